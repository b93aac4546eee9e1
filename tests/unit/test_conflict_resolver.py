"""
Unit tests for ConflictResolver.
"""

from datetime import date, datetime, time, timedelta
from uuid import uuid4

import pytest

from smart_scheduler.core.exceptions import BusinessLogicError
from smart_scheduler.models.enums import (
    ConflictType,
    ResolutionAction,
    ScheduleEntryStatus,
    TaskPriority,
)
from smart_scheduler.models.preferences import PersonalEvent, WorkingHours
from smart_scheduler.models.schedule import Conflict, GenerateOptions, ScheduleEntry
from smart_scheduler.models.task import Task
from smart_scheduler.services.conflict_resolver import ConflictResolver
from smart_scheduler.services.slot_allocator import SchedulingContext

MONDAY = date(2026, 3, 2)
USER = "user-1"
NOW = datetime(2026, 3, 2, 8, 0)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))


def make_task(title: str = "Task", minutes: int = 60, due=None) -> Task:
    return Task(
        id=uuid4(),
        user_id=USER,
        title=title,
        estimated_minutes=minutes,
        priority=TaskPriority.HIGH,
        due_date=due,
        created_at=datetime(2026, 3, 1, 12, 0),
    )


def make_entry(task: Task, start: datetime, end: datetime, **kwargs) -> ScheduleEntry:
    return ScheduleEntry(
        id=uuid4(),
        user_id=USER,
        task_id=task.id,
        title=task.title,
        start=start,
        end=end,
        priority=task.priority,
        **kwargs,
    )


def make_conflict(kind: ConflictType, entries=(), task: Task = None) -> Conflict:
    return Conflict(
        id=uuid4(),
        user_id=USER,
        kind=kind,
        entry_ids=[e.id for e in entries],
        task_id=task.id if task else None,
        details="test",
        created_at=NOW,
    )


def make_context(days: int = 1, work_end: time = time(17, 0), events=()) -> SchedulingContext:
    return SchedulingContext(
        user_id=USER,
        options=GenerateOptions(),
        working_hours=WorkingHours(start=time(9, 0), end=work_end),
        horizon_start=NOW,
        horizon_end=at(MONDAY + timedelta(days=days), 0),
        personal_events=list(events),
        now=NOW,
    )


@pytest.fixture
def overlapping():
    """Two pinned entries overlapping on Monday morning, plus their conflict."""
    a, b = make_task("A"), make_task("B")
    first = make_entry(a, at(MONDAY, 10), at(MONDAY, 11), is_manual=True,
                       status=ScheduleEntryStatus.CONFLICTED)
    second = make_entry(b, at(MONDAY, 10, 30), at(MONDAY, 11, 30), is_manual=True,
                        status=ScheduleEntryStatus.CONFLICTED)
    conflict = make_conflict(ConflictType.OVERLAP, [first, second])
    return first, second, conflict


class TestReschedule:
    def test_later_overlapping_entry_moves_to_next_free_slot(self, overlapping):
        first, second, conflict = overlapping
        resolver = ConflictResolver(make_context(), [first, second], [conflict])

        result = resolver.resolve(conflict, ResolutionAction.RESCHEDULE_TO_NEXT_SLOT)

        by_id = {entry.id: entry for entry in result.entries}
        assert set(by_id) == {first.id, second.id}
        moved, stayed = by_id[second.id], by_id[first.id]
        assert (moved.start, moved.end) == (at(MONDAY, 11), at(MONDAY, 12))
        assert (stayed.start, stayed.end) == (first.start, first.end)
        assert moved.status == ScheduleEntryStatus.SCHEDULED
        assert stayed.status == ScheduleEntryStatus.SCHEDULED
        assert result.removed_entry_ids == []
        assert result.conflict.is_resolved
        assert result.conflict.resolution_action == ResolutionAction.RESCHEDULE_TO_NEXT_SLOT
        assert result.conflict.resolved_at == NOW
        assert result.changed

    def test_entry_overlapping_event_moves_past_it(self):
        task = make_task("A")
        entry = make_entry(task, at(MONDAY, 10), at(MONDAY, 11), is_manual=True)
        event = PersonalEvent(
            id=uuid4(), user_id=USER, start=at(MONDAY, 10, 30), end=at(MONDAY, 12)
        )
        conflict = make_conflict(ConflictType.OVERLAP, [entry])

        result = ConflictResolver(make_context(events=[event]), [entry], [conflict]).resolve(
            conflict, ResolutionAction.RESCHEDULE_TO_NEXT_SLOT
        )

        assert result.entries[0].start == at(MONDAY, 12)

    def test_unplaced_unit_placed_ignoring_due_date(self):
        task = make_task("Overdue", 90, due=datetime(2026, 2, 27))
        conflict = make_conflict(ConflictType.DUE_DATE_INFEASIBLE, task=task)

        result = ConflictResolver(make_context(), [], [conflict]).resolve(
            conflict, ResolutionAction.RESCHEDULE_TO_NEXT_SLOT, task
        )

        [entry] = result.entries
        assert entry.task_id == task.id
        assert (entry.start, entry.end) == (at(MONDAY, 9), at(MONDAY, 10, 30))

    def test_no_free_slot_raises(self):
        task = make_task("Too long", 600)
        conflict = make_conflict(ConflictType.NO_AVAILABLE_SLOT, task=task)

        with pytest.raises(BusinessLogicError):
            ConflictResolver(make_context(), [], [conflict]).resolve(
                conflict, ResolutionAction.RESCHEDULE_TO_NEXT_SLOT, task
            )

    def test_unplaced_unit_without_task_raises(self):
        conflict = make_conflict(ConflictType.NO_AVAILABLE_SLOT, task=make_task())

        with pytest.raises(BusinessLogicError):
            ConflictResolver(make_context(), [], [conflict]).resolve(
                conflict, ResolutionAction.RESCHEDULE_TO_NEXT_SLOT, None
            )


class TestOtherActions:
    def test_override_pins_entries(self, overlapping):
        first, second, conflict = overlapping
        first = first.model_copy(update={"is_manual": False})

        result = ConflictResolver(make_context(), [first, second], [conflict]).resolve(
            conflict, ResolutionAction.OVERRIDE_AND_KEEP
        )

        assert {e.id for e in result.entries} == {first.id, second.id}
        assert all(e.is_manual for e in result.entries)
        assert all(e.status == ScheduleEntryStatus.SCHEDULED for e in result.entries)
        assert [(e.start, e.end) for e in result.entries] == [
            (first.start, first.end),
            (second.start, second.end),
        ]

    def test_cancel_removes_entries(self, overlapping):
        first, second, conflict = overlapping

        result = ConflictResolver(make_context(), [first, second], [conflict]).resolve(
            conflict, ResolutionAction.CANCEL_ENTRY
        )

        assert result.entries == []
        assert set(result.removed_entry_ids) == {first.id, second.id}
        assert result.conflict.resolution_action == ResolutionAction.CANCEL_ENTRY

    def test_split_and_retry_places_pieces_before_deadline(self):
        task = make_task("Long", 90, due=at(MONDAY + timedelta(days=2), 0))
        conflict = make_conflict(ConflictType.DUE_DATE_INFEASIBLE, task=task)
        context = make_context(days=3, work_end=time(10, 0))

        result = ConflictResolver(context, [], [conflict]).resolve(
            conflict, ResolutionAction.SPLIT_AND_RETRY, task
        )

        assert [(e.start, e.end) for e in result.entries] == [
            (at(MONDAY, 9), at(MONDAY, 9, 45)),
            (at(MONDAY + timedelta(days=1), 9), at(MONDAY + timedelta(days=1), 9, 45)),
        ]
        assert [e.part_count for e in result.entries] == [2, 2]

    def test_split_and_retry_replaces_existing_entry(self):
        task = make_task("Long", 60)
        entry = make_entry(task, at(MONDAY, 9), at(MONDAY, 10))
        blocker = make_entry(make_task("Other"), at(MONDAY, 10), at(MONDAY, 10, 30))
        conflict = make_conflict(ConflictType.OVERLAP, [entry])

        result = ConflictResolver(make_context(), [entry, blocker], [conflict]).resolve(
            conflict, ResolutionAction.SPLIT_AND_RETRY, task
        )

        assert result.removed_entry_ids == [entry.id]
        assert len(result.entries) == 2
        assert sum(e.duration_minutes for e in result.entries) == 60
        assert all(e.start >= at(MONDAY, 9) for e in result.entries)

    def test_split_without_room_raises(self):
        task = make_task("Long", 240, due=at(MONDAY, 10))
        conflict = make_conflict(ConflictType.DUE_DATE_INFEASIBLE, task=task)

        with pytest.raises(BusinessLogicError):
            ConflictResolver(make_context(), [], [conflict]).resolve(
                conflict, ResolutionAction.SPLIT_AND_RETRY, task
            )


class TestResolutionState:
    def test_resolved_conflict_is_noop(self, overlapping):
        first, second, conflict = overlapping
        resolved = conflict.model_copy(
            update={"is_resolved": True, "resolution_action": ResolutionAction.CANCEL_ENTRY}
        )

        result = ConflictResolver(make_context(), [first, second], []).resolve(
            resolved, ResolutionAction.RESCHEDULE_TO_NEXT_SLOT
        )

        assert result.changed is False
        assert result.entries == []
        assert result.removed_entry_ids == []
        assert result.conflict.resolution_action == ResolutionAction.CANCEL_ENTRY

    def test_entry_in_another_open_conflict_stays_conflicted(self, overlapping):
        first, second, conflict = overlapping
        other = make_conflict(ConflictType.VALIDATION, [first])

        result = ConflictResolver(make_context(), [first, second], [conflict, other]).resolve(
            conflict, ResolutionAction.OVERRIDE_AND_KEEP
        )

        status = {e.id: e.status for e in result.entries}
        assert status[first.id] == ScheduleEntryStatus.CONFLICTED
        assert status[second.id] == ScheduleEntryStatus.SCHEDULED

    def test_entry_kept_in_place_stays_conflicted_if_still_referenced(self, overlapping):
        first, second, conflict = overlapping
        other = make_conflict(ConflictType.VALIDATION, [first])

        result = ConflictResolver(make_context(), [first, second], [conflict, other]).resolve(
            conflict, ResolutionAction.RESCHEDULE_TO_NEXT_SLOT
        )

        status = {e.id: e.status for e in result.entries}
        assert status == {
            first.id: ScheduleEntryStatus.CONFLICTED,
            second.id: ScheduleEntryStatus.SCHEDULED,
        }
