"""
Utilities for reasoning about booking slots in wall-clock time.

Slot format: "HH:MM-HH:MM" (e.g. "19:00-21:00").

The lounge trades past midnight, so a slot bound whose hour is before 06:00
belongs to the day *after* the booking date: "23:00-01:00" on 2024-03-01 runs
from 2024-03-01 23:00 to 2024-03-02 01:00.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from .constants import TableLocation
from .validation import ValidationError, parse_date, validate_time_slot

EARLY_MORNING_CUTOFF_HOUR = 6
# Outdoor areas close at 22:00.
OUTDOOR_CLOSING_HOUR = 22
RESTRICTED_LOCATIONS = {TableLocation.OUTDOOR.value, TableLocation.TERRACE.value}

# Ordering is allowed from 30 minutes before the slot until 3 hours after it.
ORDERING_WINDOW_LEAD = timedelta(minutes=30)
ORDERING_WINDOW_GRACE = timedelta(hours=3)
# A reservation keeps governing its table for 2 hours after the slot (cleanup).
OCCUPANCY_WINDOW_GRACE = timedelta(hours=2)


def parse_slot(slot: str) -> tuple[str, str]:
    """Split a slot into its ("HH:MM", "HH:MM") bounds or raise ValidationError."""
    normalized = validate_time_slot(slot)
    start, end = normalized.split("-")
    if start == end:
        raise ValidationError(f"Time slot '{slot}' has no duration")
    return start, end


def _anchor(day: date, hhmm: str) -> datetime:
    hour, minute = (int(part) for part in hhmm.split(":"))
    moment = datetime.combine(day, time(hour, minute))
    if hour < EARLY_MORNING_CUTOFF_HOUR:
        moment += timedelta(days=1)
    return moment


def slot_bounds(day: date | str, slot: str) -> tuple[datetime, datetime]:
    """
    Absolute (start, end) of `slot` on booking date `day`.

    The end is always strictly after the start.
    """
    booking_day = parse_date(day)
    start_str, end_str = parse_slot(slot)
    start = _anchor(booking_day, start_str)
    end = _anchor(booking_day, end_str)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def slot_end_hour(slot: str) -> int:
    _, end = parse_slot(slot)
    return int(end.split(":")[0])


def is_location_open_for_slot(location: str | TableLocation, slot: str) -> bool:
    """
    Outdoor and terrace tables cannot be booked for slots ending after 22:00
    or before 06:00. Other locations are unrestricted.
    """
    key = location.value if isinstance(location, TableLocation) else str(location)
    if key not in RESTRICTED_LOCATIONS:
        return True
    end_hour = slot_end_hour(slot)
    return not (end_hour > OUTDOOR_CLOSING_HOUR or end_hour < EARLY_MORNING_CUTOFF_HOUR)


def reservation_bounds(reservation) -> tuple[datetime, datetime]:
    """Slot bounds of a reservation, from its date and start/end strings."""
    if reservation.start_time and reservation.end_time:
        slot = f"{reservation.start_time}-{reservation.end_time}"
    else:
        slot = reservation.time_slot
    if reservation.reservation_date is None or not slot:
        raise ValidationError(f"Reservation {reservation.id} has no date or slot")
    return slot_bounds(reservation.reservation_date, slot)


def is_within_ordering_window(reservation, now: datetime) -> bool:
    """True while orders may be attached: [start - 30min, end + 3h]."""
    start, end = reservation_bounds(reservation)
    return start - ORDERING_WINDOW_LEAD <= now <= end + ORDERING_WINDOW_GRACE


def is_within_occupancy_window(reservation, now: datetime) -> bool:
    """True while the reservation governs its table: [start, end + 2h]."""
    start, end = reservation_bounds(reservation)
    return start <= now <= end + OCCUPANCY_WINDOW_GRACE
