"""
Input validation utilities.
"""

import re
from datetime import date, datetime


class ValidationError(Exception):
    """Raised when validation fails."""


SLOT_REGEX = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])-([01][0-9]|2[0-3]):([0-5][0-9])$")


def validate_time_slot(slot: str) -> str:
    """Validate a "HH:MM-HH:MM" slot string; returns it stripped."""
    normalized = (slot or "").strip()
    if not SLOT_REGEX.match(normalized):
        raise ValidationError(f"Invalid time slot '{slot}'. Use the format HH:MM-HH:MM.")
    return normalized


def validate_party_size(party_size: int) -> int:
    if not isinstance(party_size, int) or isinstance(party_size, bool) or party_size < 1:
        raise ValidationError("Party size must be a positive integer")
    return party_size


def parse_date(value: str | date) -> date:
    """Accept a date or an ISO "YYYY-MM-DD" string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{value}'. Use the format YYYY-MM-DD.") from exc
