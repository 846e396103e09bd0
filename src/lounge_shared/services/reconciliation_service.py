"""
Reconciliation between the reservation and order streams.

- Order side effects on reservations: a linked order seats the reservation,
  delivering it completes the reservation. These never fail the order write.
- Advisory consistency check between an order and its reservation.
- Ordering context for a table (the reservation currently in its window).
- ReconciliationCoordinator: recomputes every table status whenever either
  change feed fires and pushes the result to listeners.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from lounge_shared.constants import (
    OCCUPYING_RESERVATION_STATUSES,
    ActorScope,
    Collection,
    OrderType,
    PaymentStatus,
    ReservationStatus,
)
from lounge_shared.errors import FloorError, NotFoundError, ValidationMismatch
from lounge_shared.logging_config import get_logger
from lounge_shared.models import Order, Reservation
from lounge_shared.realtime import ChangeEvent
from lounge_shared.services.booking_service import transition_reservation
from lounge_shared.services.table_status_service import (
    TableStatus,
    TableStatusThresholds,
    get_table_statuses,
)
from lounge_shared.slot_utils import is_within_ordering_window
from lounge_shared.store import DocumentStore, OrderFilter, ReservationFilter
from lounge_shared.validation import ValidationError

logger = get_logger(__name__)

FIRST_ORDER_NOTE = "Order placed"
ADDITIONAL_ORDER_NOTE = "Additional order placed"


# ----------------------------------------------------------------------
# Order -> reservation side effects
# ----------------------------------------------------------------------


async def get_recent_orders_for_reservation(store: DocumentStore, reservation_id: int) -> list[Order]:
    try:
        return await store.query_orders(OrderFilter(reservation_id=reservation_id))
    except FloorError as exc:
        logger.error(f"Error getting orders for reservation {reservation_id}: {exc}", exc_info=True)
        return []


async def promote_reservation_for_order(
    store: DocumentStore, reservation_id: int, order_id: int | None = None
) -> None:
    """
    Seat the reservation an order was placed against. No-op when already
    seated. Errors are logged, never raised.
    """
    try:
        reservation = await store.get_reservation(reservation_id)
        if reservation is None:
            logger.warning(f"Order {order_id} references missing reservation {reservation_id}")
            return
        if reservation.status == ReservationStatus.SEATED.value:
            return

        orders = await get_recent_orders_for_reservation(store, reservation_id)
        earlier_orders = [order for order in orders if order.id != order_id]
        notes = ADDITIONAL_ORDER_NOTE if earlier_orders else FIRST_ORDER_NOTE

        await transition_reservation(
            store,
            reservation_id,
            ReservationStatus.SEATED,
            actor_scope=ActorScope.SYSTEM,
            notes=notes,
        )
    except Exception as exc:
        logger.error(
            f"Could not seat reservation {reservation_id} for order {order_id}: {exc}",
            exc_info=True,
        )


async def complete_reservation_for_order(store: DocumentStore, reservation_id: int) -> None:
    """
    Complete the reservation of a delivered order unless it already is.
    Errors are logged, never raised.
    """
    try:
        reservation = await store.get_reservation(reservation_id)
        if reservation is None:
            logger.warning(f"Delivered order references missing reservation {reservation_id}")
            return
        if reservation.status == ReservationStatus.COMPLETED.value:
            return

        await transition_reservation(
            store,
            reservation_id,
            ReservationStatus.COMPLETED,
            actor_scope=ActorScope.SYSTEM,
        )
    except Exception as exc:
        logger.error(f"Could not complete reservation {reservation_id}: {exc}", exc_info=True)


# ----------------------------------------------------------------------
# Consistency check
# ----------------------------------------------------------------------


def _table_number_matches(value, table_number: int) -> bool:
    try:
        return int(value) == table_number
    except (TypeError, ValueError):
        return False


def validate_order_reservation_consistency(order_data: dict[str, Any], reservation: Reservation) -> bool:
    """
    True when the order agrees with its reservation: same table, and any
    customer name/email/phone given on the order is identical to the
    reservation's. Mismatches are only logged.
    """
    mismatches = []
    if not _table_number_matches(order_data.get("table_number"), reservation.table_number):
        mismatches.append(
            ValidationMismatch("table_number", order_data.get("table_number"), reservation.table_number)
        )

    for field_name in ("customer_name", "customer_email", "customer_phone"):
        order_value = order_data.get(field_name)
        reservation_value = getattr(reservation, field_name)
        if not order_value or not reservation_value:
            continue
        if order_value != reservation_value:
            mismatches.append(ValidationMismatch(field_name, order_value, reservation_value))

    for mismatch in mismatches:
        logger.warning(
            f"{mismatch.code} order/reservation {reservation.id}: {mismatch}",
            extra={"field": mismatch.field},
        )
    return not mismatches


# ----------------------------------------------------------------------
# Table ordering context
# ----------------------------------------------------------------------


@dataclass
class TableOrderingContext:
    table_number: int
    has_active_reservation: bool = False
    reservation: Reservation | None = None
    suggested_customer_name: str | None = None
    suggested_customer_email: str | None = None
    suggested_customer_phone: str | None = None
    pre_order_items: list[str] = field(default_factory=list)


def _orderable_now(reservation: Reservation, now: datetime) -> bool:
    try:
        return is_within_ordering_window(reservation, now)
    except ValidationError:
        return False


async def get_active_reservation_for_table(
    store: DocumentStore, table_number: int, now: datetime | None = None
) -> Reservation | None:
    """
    The confirmed/seated reservation whose ordering window contains `now`.
    Yesterday's bookings are included so slots crossing midnight are found.
    """
    now = now or store.now()
    today = now.date()
    try:
        reservations = await store.query_reservations(
            ReservationFilter(
                table_number=table_number,
                date_range=(today - timedelta(days=1), today),
                statuses=OCCUPYING_RESERVATION_STATUSES,
            )
        )
    except FloorError as exc:
        logger.error(f"Error getting active reservation for table {table_number}: {exc}", exc_info=True)
        return None

    current = [r for r in reservations if _orderable_now(r, now)]
    if not current:
        return None
    return max(current, key=lambda r: (r.updated_at, r.id))


async def get_table_context_for_ordering(
    store: DocumentStore, table_number: int, now: datetime | None = None
) -> TableOrderingContext:
    reservation = await get_active_reservation_for_table(store, table_number, now)
    if reservation is None:
        return TableOrderingContext(table_number=table_number)

    return TableOrderingContext(
        table_number=table_number,
        has_active_reservation=True,
        reservation=reservation,
        suggested_customer_name=reservation.customer_name,
        suggested_customer_email=reservation.customer_email,
        suggested_customer_phone=reservation.customer_phone,
        pre_order_items=list(reservation.pre_order_items or []),
    )


# ----------------------------------------------------------------------
# Order creation
# ----------------------------------------------------------------------


def _order_total(order_data: dict[str, Any]) -> Decimal:
    if order_data.get("total_amount") is not None:
        return Decimal(str(order_data["total_amount"]))
    total = sum(
        Decimal(str(item["unit_price"])) * int(item.get("quantity", 1))
        for item in order_data.get("items") or []
    )
    return Decimal(total).quantize(Decimal("0.01"))


async def create_order_with_reservation(
    store: DocumentStore, order_data: dict[str, Any], reservation_id: int | None = None
) -> int:
    """
    Create an order, linking it to a reservation when one is given.

    The consistency check is advisory; the reservation is seated after the
    order is stored.

    Raises:
        NotFoundError: `reservation_id` does not exist
    """
    total = _order_total(order_data)
    data = dict(order_data)
    data["total_amount"] = total
    data["order_type"] = OrderType.RESERVATION if reservation_id else OrderType.WALK_IN
    data["reservation_id"] = reservation_id
    data["payment"] = {
        "status": PaymentStatus.UNPAID,
        "amount": total,
        "method": order_data.get("payment_method"),
    }

    if reservation_id:
        reservation = await store.get_reservation(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        validate_order_reservation_consistency(data, reservation)

    order_id = await store.create_order(data)
    logger.info(
        f"Order {order_id} created for table {data['table_number']} "
        f"({data['order_type'].value}, total {total})"
    )

    if reservation_id:
        await promote_reservation_for_order(store, reservation_id, order_id)

    return order_id


async def get_reservation_orders_by_date_range(
    store: DocumentStore, start: datetime, end: datetime
) -> tuple[list[Order], list[Order]]:
    """(reservation orders, walk-in orders) created in [start, end)."""
    try:
        orders = await store.query_orders(OrderFilter(date_range=(start, end)))
    except FloorError as exc:
        logger.error(f"Error getting orders between {start} and {end}: {exc}", exc_info=True)
        return [], []

    reservation_orders = [o for o in orders if o.order_type == OrderType.RESERVATION.value]
    walk_in_orders = [o for o in orders if o.order_type == OrderType.WALK_IN.value]
    return reservation_orders, walk_in_orders


# ----------------------------------------------------------------------
# Recompute-on-change coordinator
# ----------------------------------------------------------------------

StatusListener = Callable[[list[TableStatus]], Any]

_STOP = object()


class ReconciliationCoordinator:
    """
    Merges the reservation and order change feeds into full recomputations of
    the table board.

    Each change event enqueues one recompute; a single worker task drains the
    queue, so recomputes never overlap. Results go to every registered
    listener (plain or async callables). With a Redis-relayed feed, writes
    made by other processes (the staff API) trigger recomputes here too.
    """

    def __init__(
        self,
        store: DocumentStore,
        thresholds: TableStatusThresholds | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self._thresholds = thresholds or TableStatusThresholds()
        self._clock = clock
        self._listeners: list[StatusListener] = []
        self._unsubscribers: list[Callable[[], None]] = []
        self._queue: asyncio.Queue | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._worker: asyncio.Task | None = None
        self.latest: list[TableStatus] = []
        self.recompute_count = 0

    @property
    def thresholds(self) -> TableStatusThresholds:
        return self._thresholds

    def set_thresholds(self, thresholds: TableStatusThresholds) -> None:
        """Swap the escalation thresholds; the next recompute uses them."""
        self._thresholds = thresholds
        logger.info(
            f"Table status thresholds updated: warning={thresholds.warning_minutes}m "
            f"overdue={thresholds.overdue_minutes}m"
        )

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def on_table_status_change(self, callback: StatusListener) -> Callable[[], None]:
        """Register a listener for recomputed boards; returns an unsubscribe."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def start(self) -> None:
        if self.is_running:
            return
        self._queue = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        self._unsubscribers = [
            self.store.subscribe(Collection.RESERVATIONS, self._on_change),
            self.store.subscribe(Collection.ORDERS, self._on_change),
        ]
        self._worker = asyncio.create_task(self._run(), name="table-status-recompute")
        self.request_recompute("startup")
        logger.info("Reconciliation coordinator started")

    async def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._worker is None:
            return
        self._queue.put_nowait(_STOP)
        await self._worker
        self._worker = None
        logger.info("Reconciliation coordinator stopped")

    def request_recompute(self, reason: str = "manual") -> None:
        if self._queue is None:
            raise RuntimeError("Coordinator not started")
        self._queue.put_nowait(reason)

    def _on_change(self, event: ChangeEvent) -> None:
        reason = f"{event.collection}:{event.action}:{event.document_id}"
        if self._loop is None or self._loop.is_closed():
            return
        try:
            on_loop = asyncio.get_running_loop() is self._loop
        except RuntimeError:
            on_loop = False
        if on_loop:
            self.request_recompute(reason)
        else:
            # Relayed from another process on the bus listener thread.
            self._loop.call_soon_threadsafe(self.request_recompute, reason)

    async def wait_idle(self) -> None:
        """Wait until every queued recompute has run."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self) -> None:
        while True:
            reason = await self._queue.get()
            try:
                if reason is _STOP:
                    return
                await self.recompute()
            except Exception as exc:
                logger.error(f"Table status recompute failed ({reason}): {exc}", exc_info=True)
            finally:
                self._queue.task_done()

    async def recompute(self) -> list[TableStatus]:
        now = self._clock() if self._clock else self.store.now()
        statuses = await get_table_statuses(self.store, now=now, thresholds=self._thresholds)
        self.latest = statuses
        self.recompute_count += 1

        for listener in list(self._listeners):
            try:
                result = listener(statuses)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning(f"Table status listener failed (continuing): {exc}", exc_info=True)
        return statuses
