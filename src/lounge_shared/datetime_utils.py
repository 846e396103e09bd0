"""
Datetime utilities.

Slots, reservation dates and activity timestamps are all expressed in the
restaurant's wall-clock time as naive datetimes.
"""

from datetime import datetime
from zoneinfo import ZoneInfo


def local_now(tz_name: str | None = None) -> datetime:
    """
    Current restaurant wall-clock time as a naive datetime.

    When `tz_name` is empty the process local time is used.
    """
    if tz_name:
        return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)
    return datetime.now()


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Whole minutes elapsed from `earlier` to `later`, floored."""
    return int((later - earlier).total_seconds() // 60)
