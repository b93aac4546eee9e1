"""
Bucketed overlap index.

Time is quantized into 15-minute buckets keyed "YYYY-MM-DD_HH:MM". An
occupant registered over [start, end) is stored in every bucket the span
touches, so two spans sharing a bucket are reported as conflicting even when
they do not strictly overlap. Scheduled units are at least one bucket long,
which keeps that imprecision harmless.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterator, Optional

BUCKET_MINUTES = 15


def time_key(dt: datetime) -> str:
    """Bucket key of a timestamp: date, hour, floor(minute / 15) * 15."""
    bucket_minute = (dt.minute // BUCKET_MINUTES) * BUCKET_MINUTES
    return f"{dt:%Y-%m-%d}_{dt.hour:02d}:{bucket_minute:02d}"


def iter_time_keys(start: datetime, end: datetime) -> Iterator[str]:
    """Keys of every bucket touched by [start, end)."""
    current = start.replace(
        minute=(start.minute // BUCKET_MINUTES) * BUCKET_MINUTES, second=0, microsecond=0
    )
    step = timedelta(minutes=BUCKET_MINUTES)
    while current < end:
        yield time_key(current)
        current += step


class ConflictDetector:
    """
    Map from bucket key to the occupants registered in that bucket.

    Occupants are any objects with `start`/`end` attributes (schedule entries,
    personal events) or arbitrary objects registered with an explicit span.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, list[Any]] = {}
        self._order: dict[int, int] = {}
        self._counter = 0

    def register_occupancy(
        self,
        occupant: Any,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> None:
        span_start = start if start is not None else occupant.start
        span_end = end if end is not None else occupant.end
        ident = id(occupant)
        if ident not in self._order:
            self._order[ident] = self._counter
            self._counter += 1
        for key in iter_time_keys(span_start, span_end):
            bucket = self._buckets.setdefault(key, [])
            if not any(existing is occupant for existing in bucket):
                bucket.append(occupant)

    def query_conflicts(self, start: datetime, end: datetime) -> list[Any]:
        """Occupants sharing at least one bucket with [start, end), in registration order."""
        found: dict[int, Any] = {}
        for key in iter_time_keys(start, end):
            for occupant in self._buckets.get(key, ()):
                found.setdefault(id(occupant), occupant)
        return sorted(found.values(), key=lambda occ: self._order[id(occ)])

    def __len__(self) -> int:
        """Number of occupied buckets."""
        return len(self._buckets)
