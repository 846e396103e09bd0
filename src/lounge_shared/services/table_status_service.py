"""
Status Derivation Engine - live per-table status from reservations + orders.

`derive_status` is a pure function of a table, its reservations, its orders,
the clock and the escalation thresholds. Nothing here writes to the store.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from lounge_shared.constants import (
    DEFAULT_MAX_SERVICE_MINUTES,
    DEFAULT_OVERDUE_MINUTES,
    DEFAULT_WARNING_MINUTES,
    OCCUPYING_RESERVATION_STATUSES,
    OPEN_ORDER_STATUSES,
    TABLE_STATUS_META_DEFAULT,
    OrderStatus,
    ReservationStatus,
    TableStatusType,
)
from lounge_shared.datetime_utils import minutes_between
from lounge_shared.logging_config import get_logger
from lounge_shared.models import Order, Reservation, Table
from lounge_shared.slot_utils import is_within_occupancy_window
from lounge_shared.store import DocumentStore, OrderFilter, ReservationFilter
from lounge_shared.validation import ValidationError

logger = get_logger(__name__)

ORDER_LOOKBACK = timedelta(hours=24)

_OCCUPYING = {status.value for status in OCCUPYING_RESERVATION_STATUSES}
_OPEN_ORDERS = {status.value for status in OPEN_ORDER_STATUSES}
_IN_KITCHEN = {OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value, OrderStatus.PREPARING.value}


@dataclass(frozen=True)
class TableStatusThresholds:
    """Escalation thresholds in minutes since the last activity."""

    warning_minutes: int = DEFAULT_WARNING_MINUTES
    overdue_minutes: int = DEFAULT_OVERDUE_MINUTES
    max_service_minutes: int = DEFAULT_MAX_SERVICE_MINUTES


@dataclass
class TableStatus:
    table: Table
    reservation: Reservation | None
    order: Order | None
    status: TableStatusType
    waiting_time: int | None = None
    last_activity: datetime | None = None
    customer_name: str | None = None
    party_size: int | None = None


def _occupies_now(reservation: Reservation, now: datetime) -> bool:
    if reservation.status not in _OCCUPYING:
        return False
    try:
        return is_within_occupancy_window(reservation, now)
    except ValidationError as exc:
        logger.debug(f"Ignoring reservation {reservation.id} without a usable slot: {exc}")
        return False


def _select_active_reservation(
    reservations: Iterable[Reservation], now: datetime
) -> Reservation | None:
    active = [r for r in reservations if _occupies_now(r, now)]
    if not active:
        return None
    return max(active, key=lambda r: (r.updated_at or datetime.min, r.id or 0))


def _select_active_order(orders: Iterable[Order]) -> Order | None:
    open_orders = [o for o in orders if o.status in _OPEN_ORDERS]
    if not open_orders:
        return None
    return max(open_orders, key=lambda o: (o.created_at or datetime.min, o.id or 0))


def _classify(
    reservation: Reservation | None,
    order: Order | None,
    waiting_time: int | None,
    thresholds: TableStatusThresholds,
) -> TableStatusType:
    if waiting_time is not None and waiting_time > thresholds.overdue_minutes:
        return TableStatusType.OVERDUE

    if order is not None:
        if order.status in _IN_KITCHEN:
            return TableStatusType.ORDERED
        if order.status == OrderStatus.READY.value:
            if waiting_time is not None and waiting_time > thresholds.warning_minutes:
                return TableStatusType.OVERDUE
            return TableStatusType.SERVED
        if order.status == OrderStatus.DELIVERED.value:
            return TableStatusType.AWAITING_PAYMENT

    if reservation is not None:
        if reservation.status == ReservationStatus.CONFIRMED.value:
            return TableStatusType.RESERVED
        if reservation.status == ReservationStatus.SEATED.value:
            return TableStatusType.SEATED

    return TableStatusType.AVAILABLE


def derive_status(
    table: Table,
    reservations: Iterable[Reservation],
    orders: Iterable[Order],
    now: datetime,
    thresholds: TableStatusThresholds | None = None,
) -> TableStatus:
    """
    Derive the live status of one table.

    Precedence: inactive table, then overdue by waiting time, then the active
    order, then the active reservation, then available.
    """
    thresholds = thresholds or TableStatusThresholds()

    if not table.is_active:
        return TableStatus(table=table, reservation=None, order=None, status=TableStatusType.UNAVAILABLE)

    reservation = _select_active_reservation(reservations, now)
    order = _select_active_order(orders)

    activity = [doc.updated_at for doc in (reservation, order) if doc is not None and doc.updated_at]
    last_activity = max(activity) if activity else None
    waiting_time = max(0, minutes_between(last_activity, now)) if last_activity else None

    customer_name = None
    if order is not None and order.customer_name:
        customer_name = order.customer_name
    elif reservation is not None:
        customer_name = reservation.customer_name

    return TableStatus(
        table=table,
        reservation=reservation,
        order=order,
        status=_classify(reservation, order, waiting_time, thresholds),
        waiting_time=waiting_time,
        last_activity=last_activity,
        customer_name=customer_name,
        party_size=reservation.party_size if reservation is not None else None,
    )


async def get_table_statuses(
    store: DocumentStore,
    now: datetime | None = None,
    thresholds: TableStatusThresholds | None = None,
) -> list[TableStatus]:
    """Statuses of every table, sorted by table number."""
    now = now or store.now()
    today = now.date()

    tables = await store.list_tables()
    # Yesterday's reservations may cross midnight into today.
    reservations = await store.query_reservations(
        ReservationFilter(
            date_range=(today - timedelta(days=1), today),
            statuses=OCCUPYING_RESERVATION_STATUSES,
        )
    )
    orders = await store.query_orders(OrderFilter(created_since=now - ORDER_LOOKBACK))

    reservations_by_table: dict[int, list[Reservation]] = defaultdict(list)
    for reservation in reservations:
        reservations_by_table[reservation.table_number].append(reservation)
    orders_by_table: dict[int, list[Order]] = defaultdict(list)
    for order in orders:
        orders_by_table[order.table_number].append(order)

    statuses = [
        derive_status(
            table,
            reservations_by_table.get(table.number, []),
            orders_by_table.get(table.number, []),
            now,
            thresholds,
        )
        for table in tables
    ]
    statuses.sort(key=lambda item: item.table.number)
    return statuses


def get_status_display_name(status: TableStatusType | str) -> str:
    key = getattr(status, "value", status)
    return TABLE_STATUS_META_DEFAULT.get(key, {"label": key})["label"]
