"""
Document store over the lounge tables, reservations and orders.

This is the reference implementation of the store boundary used by the floor
engine: async CRUD over the SQLAlchemy models plus a per-collection change feed.
Session work runs in a worker thread (`asyncio.to_thread`) so queries never
block the event loop; change events are emitted back on the loop after commit.
Rows are returned detached (the session factory does not expire on commit), so
callers can read them after the session is gone.

Timestamps are stamped from the store clock (restaurant wall-clock time), which
tests replace with a fixed clock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .constants import (
    Collection,
    OrderStatus,
    OrderType,
    PaymentStatus,
    ReservationStatus,
)
from .datetime_utils import local_now
from .db import get_session
from .errors import ConflictError, NotFoundError, UpstreamFailure
from .logging_config import get_logger
from .models import Order, OrderItem, Reservation, Table, TimeSlot
from .realtime import ChangeEvent, ChangeFeed
from .slot_utils import EARLY_MORNING_CUTOFF_HOUR, parse_slot, slot_bounds
from .validation import parse_date

logger = get_logger(__name__)

T = TypeVar("T")

_RESERVATION_STATUS_STAMPS = {
    ReservationStatus.CONFIRMED.value: "confirmed_at",
    ReservationStatus.CANCELLED.value: "cancelled_at",
    ReservationStatus.NO_SHOW.value: "no_show_at",
    ReservationStatus.COMPLETED.value: "completed_at",
}


def _enum_value(value):
    return getattr(value, "value", value)


def _status_values(status=None, statuses: Iterable | None = None) -> list[str] | None:
    values = []
    if status is not None:
        values.append(_enum_value(status))
    if statuses is not None:
        values.extend(_enum_value(item) for item in statuses)
    return values or None


def _to_decimal(value, default: str = "0.00") -> Decimal:
    if value is None:
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value)).quantize(Decimal("0.01"))


def _service_order(start_time: str) -> tuple[int, str]:
    """Sort key placing after-midnight slots after the evening ones."""
    hour = int(start_time.split(":")[0])
    return (1 if hour < EARLY_MORNING_CUTOFF_HOUR else 0, start_time)


@dataclass
class ReservationFilter:
    """Equality filters for reservation queries; unset fields do not filter."""

    table_id: int | None = None
    table_number: int | None = None
    date: date | None = None
    # Inclusive (first_day, last_day)
    date_range: tuple[date, date] | None = None
    status: str | None = None
    statuses: Iterable[str] | None = None
    time_slot: str | None = None
    user_id: str | None = None


@dataclass
class OrderFilter:
    table_number: int | None = None
    reservation_id: int | None = None
    # Half-open [start, end) on created_at
    date_range: tuple[datetime, datetime] | None = None
    created_since: datetime | None = None
    status: str | None = None
    statuses: Iterable[str] | None = None


class DocumentStore:
    """Async CRUD + subscribe boundary over the floor collections."""

    def __init__(self, feed: ChangeFeed | None = None, clock: Callable[[], datetime] | None = None):
        self.feed = feed or ChangeFeed()
        self._clock = clock or local_now

    def now(self) -> datetime:
        return self._clock()

    def subscribe(
        self, collection: str | Collection, on_change: Callable[[ChangeEvent], None]
    ) -> Callable[[], None]:
        return self.feed.subscribe(collection, on_change)

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with get_session() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error(f"Store operation '{operation}' failed: {exc}", exc_info=True)
            raise UpstreamFailure(f"{operation} failed") from exc

    def _in_session(self, operation: str, work: Callable[[Session], T]) -> T:
        with self._session(operation) as session:
            return work(session)

    async def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        """Run `work(session)` in one transaction on a worker thread."""
        return await asyncio.to_thread(self._in_session, operation, work)

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    async def get_table(self, table_id: int) -> Table | None:
        return await self._run("get_table", lambda session: session.get(Table, table_id))

    async def get_table_by_number(self, number: int) -> Table | None:
        def work(session: Session) -> Table | None:
            return session.execute(select(Table).where(Table.number == number)).scalar_one_or_none()

        return await self._run("get_table_by_number", work)

    async def list_tables(
        self,
        active_only: bool = False,
        min_capacity: int | None = None,
        location: str | None = None,
    ) -> list[Table]:
        query = select(Table)
        if active_only:
            query = query.where(Table.is_active.is_(True))
        if min_capacity is not None:
            query = query.where(Table.capacity >= min_capacity)
        if location:
            query = query.where(Table.location == _enum_value(location))
        query = query.order_by(Table.number)

        return await self._run(
            "list_tables", lambda session: list(session.execute(query).scalars().all())
        )

    async def create_table(self, data: dict[str, Any]) -> int:
        now = self.now()
        table = Table(
            number=int(data["number"]),
            capacity=int(data["capacity"]),
            location=_enum_value(data["location"]),
            amenities=list(data.get("amenities") or []),
            is_active=bool(data.get("is_active", True)),
            price_multiplier=float(data.get("price_multiplier", 1.0)),
            created_at=now,
            updated_at=now,
        )

        def work(session: Session) -> int:
            session.add(table)
            session.flush()
            return table.id

        table_id = await self._run("create_table", work)
        self.feed.emit(
            Collection.TABLES, "created", table_id, {"number": table.number, "is_active": table.is_active}
        )
        return table_id

    # ------------------------------------------------------------------
    # Time slots
    # ------------------------------------------------------------------

    async def get_time_slots(self, active_only: bool = True) -> list[TimeSlot]:
        """Bookable slots in service order, one per distinct start/end pair."""
        query = select(TimeSlot)
        if active_only:
            query = query.where(TimeSlot.is_active.is_(True))
        query = query.order_by(TimeSlot.id)
        slots = await self._run("get_time_slots", lambda session: session.execute(query).scalars().all())

        seen = set()
        unique = []
        for slot in slots:
            key = (slot.start_time, slot.end_time)
            if key in seen:
                continue
            seen.add(key)
            unique.append(slot)
        return sorted(unique, key=lambda slot: _service_order(slot.start_time))

    async def create_time_slot(self, data: dict[str, Any]) -> int:
        start_time, end_time = parse_slot(f"{data['start_time']}-{data['end_time']}")
        duration = data.get("duration_minutes")
        if duration is None:
            start, end = slot_bounds(date(2000, 1, 1), f"{start_time}-{end_time}")
            duration = int((end - start).total_seconds() // 60)
        slot = TimeSlot(
            start_time=start_time,
            end_time=end_time,
            duration_minutes=int(duration),
            is_active=bool(data.get("is_active", True)),
            max_reservations=int(data.get("max_reservations", 1)),
        )

        def work(session: Session) -> int:
            session.add(slot)
            session.flush()
            return slot.id

        slot_id = await self._run("create_time_slot", work)
        self.feed.emit(Collection.TIME_SLOTS, "created", slot_id, {"label": f"{start_time}-{end_time}"})
        return slot_id

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    async def query_reservations(self, filters: ReservationFilter | None = None) -> list[Reservation]:
        filters = filters or ReservationFilter()
        query = select(Reservation)
        if filters.table_id is not None:
            query = query.where(Reservation.table_id == filters.table_id)
        if filters.table_number is not None:
            query = query.where(Reservation.table_number == filters.table_number)
        if filters.date is not None:
            query = query.where(Reservation.reservation_date == filters.date)
        if filters.date_range is not None:
            first_day, last_day = filters.date_range
            query = query.where(
                Reservation.reservation_date >= first_day,
                Reservation.reservation_date <= last_day,
            )
        statuses = _status_values(filters.status, filters.statuses)
        if statuses:
            query = query.where(Reservation.status.in_(statuses))
        if filters.time_slot is not None:
            query = query.where(Reservation.time_slot == filters.time_slot)
        if filters.user_id is not None:
            query = query.where(Reservation.user_id == filters.user_id)
        query = query.order_by(Reservation.id)

        return await self._run(
            "query_reservations", lambda session: list(session.execute(query).scalars().all())
        )

    async def get_reservation(self, reservation_id: int) -> Reservation | None:
        return await self._run(
            "get_reservation", lambda session: session.get(Reservation, reservation_id)
        )

    async def create_reservation(self, data: dict[str, Any]) -> int:
        """
        Insert a reservation.

        The partial unique index on (table, date, slot) over active statuses
        is what settles two bookings racing for the same slot: the
        availability check callers run first is not atomic with this insert.

        Raises:
            ConflictError: another active reservation holds the same
                (table, date, slot)
            UpstreamFailure: any other store failure
        """
        now = self.now()
        start_time, end_time = parse_slot(data["time_slot"])
        reservation = Reservation(
            table_id=int(data["table_id"]),
            table_number=int(data["table_number"]),
            user_id=str(data["user_id"]),
            customer_name=data["customer_name"],
            customer_email=data.get("customer_email"),
            customer_phone=data.get("customer_phone"),
            reservation_date=parse_date(data["reservation_date"]),
            time_slot=f"{start_time}-{end_time}",
            start_time=start_time,
            end_time=end_time,
            party_size=int(data["party_size"]),
            status=_enum_value(data.get("status", ReservationStatus.PENDING)),
            special_requests=data.get("special_requests"),
            deposit_amount=(
                _to_decimal(data["deposit_amount"]) if data.get("deposit_amount") is not None else None
            ),
            total_amount=_to_decimal(data.get("total_amount")),
            pre_order_items=list(data.get("pre_order_items") or []),
            reminder_sent=False,
            created_at=now,
            updated_at=now,
        )

        def work(session: Session) -> int:
            session.add(reservation)
            try:
                session.flush()
            except IntegrityError as exc:
                logger.info(
                    f"Reservation insert rejected for table {reservation.table_number} "
                    f"{reservation.reservation_date} {reservation.time_slot}: {exc.orig}"
                )
                raise ConflictError() from exc
            return reservation.id

        reservation_id = await self._run("create_reservation", work)
        payload = {
            "status": reservation.status,
            "table_number": reservation.table_number,
            "reservation_date": reservation.reservation_date,
            "time_slot": reservation.time_slot,
        }
        self.feed.emit(Collection.RESERVATIONS, "created", reservation_id, payload)
        return reservation_id

    async def update_reservation_status(
        self, reservation_id: int, status: str, notes: str | None = None
    ) -> None:
        """Persist a status change, stamping the matching lifecycle timestamp."""
        now = self.now()
        status_value = _enum_value(status)

        def work(session: Session) -> dict[str, Any]:
            reservation = session.get(Reservation, reservation_id)
            if reservation is None:
                raise NotFoundError(f"Reservation {reservation_id} not found")

            previous_status = reservation.status
            reservation.status = status_value
            reservation.updated_at = now
            if notes:
                reservation.notes = notes
            stamp = _RESERVATION_STATUS_STAMPS.get(status_value)
            if stamp:
                setattr(reservation, stamp, now)
            return {
                "status": status_value,
                "previous_status": previous_status,
                "table_number": reservation.table_number,
            }

        payload = await self._run("update_reservation_status", work)
        self.feed.emit(Collection.RESERVATIONS, "updated", reservation_id, payload)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def query_orders(self, filters: OrderFilter | None = None) -> list[Order]:
        filters = filters or OrderFilter()
        query = select(Order)
        if filters.table_number is not None:
            query = query.where(Order.table_number == filters.table_number)
        if filters.reservation_id is not None:
            query = query.where(Order.reservation_id == filters.reservation_id)
        if filters.date_range is not None:
            start, end = filters.date_range
            query = query.where(Order.created_at >= start, Order.created_at < end)
        if filters.created_since is not None:
            query = query.where(Order.created_at >= filters.created_since)
        statuses = _status_values(filters.status, filters.statuses)
        if statuses:
            query = query.where(Order.status.in_(statuses))
        query = query.order_by(Order.id)

        return await self._run("query_orders", lambda session: list(session.execute(query).scalars().all()))

    async def get_order(self, order_id: int) -> Order | None:
        return await self._run("get_order", lambda session: session.get(Order, order_id))

    async def create_order(self, data: dict[str, Any]) -> int:
        now = self.now()
        total = _to_decimal(data.get("total_amount"))
        payment = data.get("payment") or {}

        order = Order(
            table_number=int(data["table_number"]),
            reservation_id=data.get("reservation_id"),
            order_type=_enum_value(data.get("order_type", OrderType.WALK_IN)),
            status=_enum_value(data.get("status", OrderStatus.PENDING)),
            total_amount=total,
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            customer_email=data.get("customer_email"),
            special_instructions=data.get("special_instructions"),
            payment_status=_enum_value(payment.get("status", PaymentStatus.UNPAID)),
            payment_method=_enum_value(payment.get("method")),
            payment_amount=_to_decimal(payment.get("amount", total)),
            payment_amount_paid=_to_decimal(payment.get("amount_paid")),
            transaction_id=payment.get("transaction_id"),
            processed_by=payment.get("processed_by"),
            payment_notes=payment.get("notes"),
            created_at=now,
            updated_at=now,
        )
        for item in data.get("items") or []:
            order.items.append(
                OrderItem(
                    menu_item_id=str(item["menu_item_id"]),
                    name=item["name"],
                    unit_price=_to_decimal(item["unit_price"]),
                    quantity=int(item.get("quantity", 1)),
                    category=item.get("category"),
                    note=item.get("note"),
                )
            )

        def work(session: Session) -> int:
            session.add(order)
            session.flush()
            return order.id

        order_id = await self._run("create_order", work)
        payload = {
            "status": order.status,
            "table_number": order.table_number,
            "reservation_id": order.reservation_id,
        }
        self.feed.emit(Collection.ORDERS, "created", order_id, payload)
        return order_id

    async def update_order_status(self, order_id: int, status: str) -> None:
        now = self.now()
        status_value = _enum_value(status)

        def work(session: Session) -> dict[str, Any]:
            order = session.get(Order, order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")

            previous_status = order.status
            order.status = status_value
            order.updated_at = now
            if status_value == OrderStatus.DELIVERED.value:
                order.completed_at = now
            return {
                "status": status_value,
                "previous_status": previous_status,
                "table_number": order.table_number,
                "reservation_id": order.reservation_id,
            }

        payload = await self._run("update_order_status", work)
        self.feed.emit(Collection.ORDERS, "updated", order_id, payload)
