"""
Availability Allocator - which tables can take a party for a (date, slot).

A table is available when no reservation in pending/confirmed/seated holds the
same table for the same date and slot string.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from lounge_shared.constants import ACTIVE_RESERVATION_STATUSES, RESERVATION_BASE_FEE
from lounge_shared.errors import FloorError, NotFoundError, UnavailableError, UpstreamFailure
from lounge_shared.logging_config import get_logger
from lounge_shared.models import Table
from lounge_shared.slot_utils import is_location_open_for_slot
from lounge_shared.store import DocumentStore, ReservationFilter
from lounge_shared.validation import parse_date, validate_party_size, validate_time_slot

logger = get_logger(__name__)

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class AvailabilityCheck:
    date: date
    time_slot: str
    party_size: int
    preferred_location: str | None = None


@dataclass(frozen=True)
class AvailableTable:
    table: Table
    available: bool
    price: Decimal


def compute_price(table: Table) -> Decimal:
    """Booking fee for a table: base fee x price multiplier, rounded to cents."""
    multiplier = Decimal(str(table.price_multiplier or 0))
    return (RESERVATION_BASE_FEE * multiplier).quantize(_CENTS, rounding=ROUND_HALF_UP)


async def check_table_availability(
    store: DocumentStore, table_id: int, booking_date: date | str, time_slot: str
) -> bool:
    """
    True when no active reservation holds `table_id` for (date, slot).

    Raises:
        NotFoundError: no table with that id
        UnavailableError: the conflict check could not complete
    """
    try:
        table = await store.get_table(table_id)
    except UpstreamFailure as exc:
        raise UnavailableError(f"Could not load table {table_id}") from exc
    if table is None:
        raise NotFoundError(f"Table {table_id} not found")

    try:
        conflicts = await store.query_reservations(
            ReservationFilter(
                table_id=table_id,
                date=parse_date(booking_date),
                time_slot=validate_time_slot(time_slot),
                statuses=ACTIVE_RESERVATION_STATUSES,
            )
        )
    except FloorError as exc:
        raise UnavailableError(f"Availability check failed for table {table_id}") from exc

    if conflicts:
        logger.debug(
            f"Table {table.number} taken on {booking_date} {time_slot} "
            f"by reservation {conflicts[0].id}"
        )
    return not conflicts


async def get_available_tables(store: DocumentStore, check: AvailabilityCheck) -> list[AvailableTable]:
    """
    Every table that fits the party and is open for the slot, annotated with
    availability and price, sorted by table number.

    Raises:
        UpstreamFailure: the tables could not be listed
    """
    time_slot = validate_time_slot(check.time_slot)
    validate_party_size(check.party_size)
    location = getattr(check.preferred_location, "value", check.preferred_location)

    try:
        tables = await store.list_tables(
            active_only=True, min_capacity=check.party_size, location=location or None
        )
    except UpstreamFailure:
        logger.error(f"Could not list tables for {check.date} {time_slot}")
        raise

    candidates = [table for table in tables if is_location_open_for_slot(table.location, time_slot)]

    results = []
    for table in candidates:
        try:
            available = await check_table_availability(store, table.id, check.date, time_slot)
        except UnavailableError as exc:
            logger.warning(f"Treating table {table.number} as unavailable: {exc}")
            available = False
        results.append(AvailableTable(table=table, available=available, price=compute_price(table)))

    results.sort(key=lambda candidate: candidate.table.number)
    return results
