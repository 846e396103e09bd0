"""
SQLAlchemy ORM models shared by the lounge services.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .constants import ACTIVE_RESERVATION_STATUSES


class JSONBType(TypeDecorator):
    """
    JSONB on PostgreSQL, TEXT with JSON serialization elsewhere.

    This allows tests to run with SQLite while production uses PostgreSQL JSONB.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        if isinstance(value, str):
            return json.loads(value)
        return value

    @property
    def python_type(self):
        return object


JSONB_TYPE = JSONBType()

_ACTIVE_STATUS_SQL = "status IN ({})".format(
    ", ".join(f"'{status.value}'" for status in sorted(ACTIVE_RESERVATION_STATUSES))
)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class Table(Base):
    """
    A physical table on the floor. Soft-disabled through `is_active`, rarely
    deleted.
    """

    __tablename__ = "lounge_tables"
    __table_args__ = (
        Index("ix_table_number", "number", unique=True),
        Index("ix_table_active_capacity", "is_active", "capacity"),
        CheckConstraint("capacity >= 1", name="ck_table_capacity_positive"),
        CheckConstraint("price_multiplier >= 0", name="ck_table_price_multiplier"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[str] = mapped_column(String(16), nullable=False)  # indoor, outdoor, vip, terrace
    amenities: Mapped[list[str] | None] = mapped_column(JSONB_TYPE, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False)
    price_multiplier: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<Table {self.number} cap={self.capacity} {self.location}>"


class TimeSlot(Base):
    """Bookable slot reference data."""

    __tablename__ = "lounge_time_slots"
    __table_args__ = (Index("ix_time_slot_start", "start_time"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False)
    max_reservations: Mapped[int] = mapped_column(Integer, nullable=False)

    @property
    def label(self) -> str:
        return f"{self.start_time}-{self.end_time}"


class Reservation(Base):
    """
    One reservation occupies exactly one table for exactly one slot.

    The partial unique index below lets the store itself reject a second
    active booking of the same (table, date, slot).
    """

    __tablename__ = "lounge_reservations"
    __table_args__ = (
        Index("ix_reservation_table_date", "table_id", "reservation_date"),
        Index("ix_reservation_table_number", "table_number"),
        Index("ix_reservation_user_status", "user_id", "status"),
        Index("ix_reservation_date_status", "reservation_date", "status"),
        Index(
            "ux_reservation_active_slot",
            "table_id",
            "reservation_date",
            "time_slot",
            unique=True,
            sqlite_where=text(_ACTIVE_STATUS_SQL),
            postgresql_where=text(_ACTIVE_STATUS_SQL),
        ),
        CheckConstraint("party_size >= 1", name="ck_reservation_party_size"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    table_id: Mapped[int] = mapped_column(ForeignKey("lounge_tables.id"), nullable=False)
    table_number: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(120), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_slot: Mapped[str] = mapped_column(String(11), nullable=False)  # "18:00-20:00"
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    deposit_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    pre_order_items: Mapped[list[str] | None] = mapped_column(JSONB_TYPE, nullable=True)
    reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)  # staff notes
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    no_show_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Reservation {self.id} table={self.table_number} "
            f"{self.reservation_date} {self.time_slot} {self.status}>"
        )


class Order(Base):
    """
    A food/drink order for a table. `table_number` is denormalized; the
    reservation link is optional (walk-in orders have none).
    """

    __tablename__ = "lounge_orders"
    __table_args__ = (
        Index("ix_order_table_number", "table_number"),
        Index("ix_order_status_created", "status", "created_at"),
        Index("ix_order_reservation_id", "reservation_id"),
        Index("ix_order_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    table_number: Mapped[int] = mapped_column(Integer, nullable=False)
    reservation_id: Mapped[int | None] = mapped_column(
        ForeignKey("lounge_reservations.id"), nullable=True
    )
    order_type: Mapped[str] = mapped_column(String(16), nullable=False)  # reservation, walk-in
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    customer_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Payment sub-record
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    items: Mapped[list[OrderItem]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )

    def __repr__(self) -> str:
        return f"<Order {self.id} table={self.table_number} {self.status}>"


class OrderItem(Base):
    __tablename__ = "lounge_order_items"
    __table_args__ = (
        Index("ix_order_item_order_id", "order_id"),
        CheckConstraint("quantity >= 1", name="ck_order_item_quantity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("lounge_orders.id"), nullable=False)
    menu_item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    order: Mapped[Order] = relationship("Order", back_populates="items")
