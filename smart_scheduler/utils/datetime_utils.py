"""
Datetime utilities for wall-clock scheduling arithmetic.

Scheduling works on naive datetimes expressed in the user's local wall clock;
only audit timestamps (created_at/resolved_at) are taken from UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional

# UTC timezone constant
UTC = timezone.utc

GRID_MINUTES = 15


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Replaces datetime.utcnow() which is deprecated in Python 3.12+.
    """
    return datetime.now(UTC)


def utcnow_naive() -> datetime:
    """Current UTC time without tzinfo, for SQLite DateTime columns."""
    return now_utc().replace(tzinfo=None)


def parse_time_of_day(value: str) -> Optional[time]:
    """
    Parse an "HH:MM" string.

    Returns:
        time, or None when the string is malformed or out of range
    """
    parts = value.split(":")
    if len(parts) != 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None
    if hours < 0 or hours > 23 or minutes < 0 or minutes > 59:
        return None
    return time(hours, minutes)


def format_time_of_day(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def floor_to_grid(dt: datetime, minutes: int = GRID_MINUTES) -> datetime:
    """Round down to the start of the grid cell containing dt."""
    floored = dt.replace(second=0, microsecond=0)
    return floored - timedelta(minutes=floored.minute % minutes)


def ceil_to_grid(dt: datetime, minutes: int = GRID_MINUTES) -> datetime:
    """Round up to the next grid boundary (dt itself if already aligned)."""
    floored = floor_to_grid(dt, minutes)
    if floored == dt:
        return dt
    return floored + timedelta(minutes=minutes)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def spans_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open interval overlap test for [start_a, end_a) and [start_b, end_b)."""
    return start_a < end_b and start_b < end_a
