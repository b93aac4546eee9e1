"""
Unit tests for the bucketed conflict index.
"""

from datetime import datetime
from types import SimpleNamespace

from smart_scheduler.services.conflict_detector import (
    ConflictDetector,
    iter_time_keys,
    time_key,
)


def span(start: datetime, end: datetime, name: str = "occupant") -> SimpleNamespace:
    return SimpleNamespace(start=start, end=end, name=name)


class TestTimeKeys:
    def test_key_format(self):
        assert time_key(datetime(2026, 3, 2, 9, 0)) == "2026-03-02_09:00"

    def test_key_floors_to_quarter_hour(self):
        assert time_key(datetime(2026, 3, 2, 9, 44, 59)) == "2026-03-02_09:30"

    def test_span_keys_half_open(self):
        keys = list(iter_time_keys(datetime(2026, 3, 2, 9, 0), datetime(2026, 3, 2, 10, 0)))
        assert keys == [
            "2026-03-02_09:00",
            "2026-03-02_09:15",
            "2026-03-02_09:30",
            "2026-03-02_09:45",
        ]

    def test_unaligned_span_touches_partial_buckets(self):
        keys = list(iter_time_keys(datetime(2026, 3, 2, 9, 10), datetime(2026, 3, 2, 9, 20)))
        assert keys == ["2026-03-02_09:00", "2026-03-02_09:15"]


class TestConflictDetector:
    def test_empty_detector_has_no_conflicts(self):
        detector = ConflictDetector()
        assert detector.query_conflicts(datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17)) == []
        assert len(detector) == 0

    def test_register_and_query(self):
        detector = ConflictDetector()
        meeting = span(datetime(2026, 3, 2, 10), datetime(2026, 3, 2, 11))
        detector.register_occupancy(meeting)

        assert len(detector) == 4
        assert detector.query_conflicts(datetime(2026, 3, 2, 10, 30), datetime(2026, 3, 2, 12)) == [
            meeting
        ]
        assert detector.query_conflicts(datetime(2026, 3, 2, 11), datetime(2026, 3, 2, 12)) == []

    def test_adjacent_spans_do_not_conflict(self):
        detector = ConflictDetector()
        detector.register_occupancy(span(datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 10)))
        assert detector.query_conflicts(datetime(2026, 3, 2, 10), datetime(2026, 3, 2, 11)) == []

    def test_shared_bucket_counts_as_conflict(self):
        detector = ConflictDetector()
        first = span(datetime(2026, 3, 2, 9, 0), datetime(2026, 3, 2, 9, 5))
        detector.register_occupancy(first)
        assert detector.query_conflicts(datetime(2026, 3, 2, 9, 10), datetime(2026, 3, 2, 9, 14)) == [
            first
        ]

    def test_results_deduplicated_in_registration_order(self):
        detector = ConflictDetector()
        later = span(datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 12), "later")
        earlier = span(datetime(2026, 3, 2, 8), datetime(2026, 3, 2, 10), "earlier")
        detector.register_occupancy(later)
        detector.register_occupancy(earlier)

        found = detector.query_conflicts(datetime(2026, 3, 2, 8), datetime(2026, 3, 2, 12))

        assert [o.name for o in found] == ["later", "earlier"]

    def test_explicit_span_overrides_occupant_times(self):
        detector = ConflictDetector()
        marker = object()
        detector.register_occupancy(marker, datetime(2026, 3, 2, 13), datetime(2026, 3, 2, 14))
        assert detector.query_conflicts(datetime(2026, 3, 2, 13), datetime(2026, 3, 2, 13, 15)) == [
            marker
        ]
