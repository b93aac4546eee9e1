"""
Slot allocation: places pending work into the user's free time.

One SchedulingContext holds everything a run needs (loaded before allocation
starts); a SlotAllocator mutates only its own free-range list and conflict
index, so runs never share state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID, uuid4

from smart_scheduler.core.exceptions import ValidationError
from smart_scheduler.core.logger import setup_logger
from smart_scheduler.models.enums import ConflictType, ScheduleEntryStatus, TaskStatus
from smart_scheduler.models.preferences import PersonalEvent, WorkingHours
from smart_scheduler.models.schedule import Conflict, GenerateOptions, ScheduleEntry
from smart_scheduler.models.task import Task, TaskInterval
from smart_scheduler.services.conflict_detector import ConflictDetector
from smart_scheduler.services.interval_splitter import split_duration
from smart_scheduler.utils.datetime_utils import (
    GRID_MINUTES,
    ceil_to_grid,
    floor_to_grid,
    iter_days,
    minutes_between,
    spans_overlap,
)

logger = setup_logger(__name__)


@dataclass
class SchedulingContext:
    """Inputs of one scheduling run, loaded up front."""

    user_id: str
    options: GenerateOptions
    working_hours: WorkingHours
    horizon_start: datetime
    horizon_end: datetime
    holidays: frozenset[date] = frozenset()
    personal_events: list[PersonalEvent] = field(default_factory=list)
    fixed_entries: list[ScheduleEntry] = field(default_factory=list)
    now: datetime = field(default_factory=datetime.now)
    min_split_minutes: int = 15


@dataclass(eq=False)
class FreeRange:
    """Free, grid-aligned sub-range of one day's working window."""

    day: date
    start: datetime
    end: datetime

    @property
    def minutes(self) -> int:
        return minutes_between(self.start, self.end)

    def copy(self) -> "FreeRange":
        return FreeRange(self.day, self.start, self.end)


@dataclass
class SchedulingUnit:
    """A task, or one incomplete interval of it, waiting for a slot."""

    task: Task
    duration_minutes: int
    interval: Optional[TaskInterval] = None
    order: int = 0
    part_index: Optional[int] = None
    part_count: Optional[int] = None

    @property
    def title(self) -> str:
        if self.interval is None:
            return self.task.title
        return f"{self.task.title} (Interval {self.interval.position + 1})"

    @property
    def interval_id(self) -> Optional[UUID]:
        return self.interval.id if self.interval else None


@dataclass
class AllocationResult:
    entries: list[ScheduleEntry] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)


def new_conflict(
    context: SchedulingContext,
    kind: ConflictType,
    details: str,
    entry_ids: Optional[list[UUID]] = None,
    task: Optional[Task] = None,
    interval_id: Optional[UUID] = None,
) -> Conflict:
    return Conflict(
        id=uuid4(),
        user_id=context.user_id,
        kind=kind,
        entry_ids=list(entry_ids or []),
        task_id=task.id if task else None,
        interval_id=interval_id,
        details=details,
        created_at=context.now,
    )


def unit_sort_key(unit: SchedulingUnit, prioritize_urgent: bool = True) -> tuple:
    """
    Ordering policy.

    Priority descending (when enabled), due date ascending with undated units
    last, then creation time, source order, interval position and segment.
    """
    due = unit.task.due_date
    key = (
        due is None,
        due or datetime.max,
        unit.task.created_at,
        unit.order,
        unit.interval.position if unit.interval else 0,
        unit.part_index or 0,
    )
    if prioritize_urgent:
        return (-unit.task.priority.rank,) + key
    return key


def task_deadline(task: Task, horizon_end: datetime) -> datetime:
    """
    Latest end time for a task's entries.

    A due date at exactly midnight means "by the end of that day".
    """
    if task.due_date is None:
        return horizon_end
    due = task.due_date
    if due.time() == time.min:
        due = due + timedelta(days=1)
    return min(due, horizon_end)


def subtract_span(ranges: list[FreeRange], start: datetime, end: datetime) -> list[FreeRange]:
    """Remove [start, end) from every range, keeping the pieces on both sides."""
    result: list[FreeRange] = []
    for current in ranges:
        if end <= current.start or start >= current.end:
            result.append(current)
            continue
        if start > current.start:
            result.append(FreeRange(current.day, current.start, min(start, current.end)))
        if end < current.end:
            result.append(FreeRange(current.day, max(end, current.start), current.end))
    return [r for r in result if r.end > r.start]


class SlotAllocator:
    """
    Orders pending work and places it into free time.

    Free time is a chronologically sorted list of FreeRange objects built from
    the working windows minus every fixed occupant; the ConflictDetector holds
    the same occupants and is consulted before each placement. Every occupant
    is surrounded by the user's work buffer, rounded up to the grid.
    """

    def __init__(self, context: SchedulingContext):
        self.context = context
        self.detector = ConflictDetector()
        self.ranges: list[FreeRange] = []
        buffer_cells = math.ceil(context.working_hours.work_buffer_minutes / GRID_MINUTES)
        self.buffer = timedelta(minutes=buffer_cells * GRID_MINUTES)

    # ================================
    # TIMELINE
    # ================================

    def build_timeline(self, check_fixed_entries: bool = True) -> list[Conflict]:
        """
        Build free ranges and register fixed occupants.

        Args:
            check_fixed_entries: validate pinned entries and report overlaps

        Returns:
            Conflicts found among the fixed entries
        """
        ctx = self.context
        hours = ctx.working_hours
        last_day = (ctx.horizon_end - timedelta(microseconds=1)).date()
        ranges: list[FreeRange] = []
        for day in iter_days(ctx.horizon_start.date(), last_day):
            if not self.is_working_day(day):
                continue
            window_start = max(datetime.combine(day, hours.start), ctx.horizon_start)
            window_end = min(datetime.combine(day, hours.end), ctx.horizon_end)
            window_start = ceil_to_grid(window_start)
            window_end = floor_to_grid(window_end)
            if window_end > window_start:
                ranges.append(FreeRange(day, window_start, window_end))
        self.ranges = ranges

        if ctx.options.respect_personal_events:
            for event in ctx.personal_events:
                self._block(event)

        conflicts: list[Conflict] = []
        for entry in sorted(ctx.fixed_entries, key=lambda e: (e.start, e.end)):
            if check_fixed_entries:
                conflicts.extend(self._check_fixed_entry(entry))
            self._block(entry)
        return conflicts

    def is_working_day(self, day: date) -> bool:
        return (
            self.context.working_hours.is_active_day(day.weekday())
            and day not in self.context.holidays
        )

    def within_working_window(self, start: datetime, end: datetime) -> bool:
        """True when [start, end) lies inside one working window on a valid day."""
        day = start.date()
        if not self.is_working_day(day):
            return False
        hours = self.context.working_hours
        return (
            datetime.combine(day, hours.start) <= start
            and end <= datetime.combine(day, hours.end)
            and start < end
        )

    def _block(self, occupant) -> None:
        self.detector.register_occupancy(occupant)
        self._carve(occupant.start, occupant.end)

    def _carve(self, start: datetime, end: datetime) -> None:
        """Drop [start, end), widened to the grid and the buffer, from the free ranges."""
        self.ranges = subtract_span(
            self.ranges,
            floor_to_grid(start) - self.buffer,
            ceil_to_grid(end) + self.buffer,
        )

    def _check_fixed_entry(self, entry: ScheduleEntry) -> list[Conflict]:
        ctx = self.context
        conflicts: list[Conflict] = []
        if not ctx.options.allow_manual_override and not self.within_working_window(
            entry.start, entry.end
        ):
            conflicts.append(
                new_conflict(
                    ctx,
                    ConflictType.VALIDATION,
                    f'Pinned entry "{entry.title}" lies outside the working hours',
                    entry_ids=[entry.id],
                )
            )
        for occupant in self.detector.query_conflicts(entry.start, entry.end):
            if not spans_overlap(entry.start, entry.end, occupant.start, occupant.end):
                continue
            if isinstance(occupant, ScheduleEntry):
                conflicts.append(
                    new_conflict(
                        ctx,
                        ConflictType.OVERLAP,
                        f'Pinned entries "{occupant.title}" and "{entry.title}" overlap',
                        entry_ids=[occupant.id, entry.id],
                    )
                )
            else:
                conflicts.append(
                    new_conflict(
                        ctx,
                        ConflictType.OVERLAP,
                        f'Pinned entry "{entry.title}" overlaps event "{occupant.title}"',
                        entry_ids=[entry.id],
                    )
                )
        return conflicts

    # ================================
    # ALLOCATION
    # ================================

    def allocate(self, tasks: list[Task]) -> AllocationResult:
        """Run the full allocation for the context's user."""
        ctx = self.context
        result = AllocationResult()
        result.conflicts.extend(self.build_timeline(check_fixed_entries=True))

        conflicted_ids = {eid for conflict in result.conflicts for eid in conflict.entry_ids}
        for entry in ctx.fixed_entries:
            status = (
                ScheduleEntryStatus.CONFLICTED
                if entry.id in conflicted_ids
                else ScheduleEntryStatus.SCHEDULED
            )
            result.entries.append(entry.model_copy(update={"status": status}))

        units, invalid = self.build_units(tasks)
        result.conflicts.extend(invalid)
        prioritize = ctx.options.prioritize_urgent_tasks
        for unit in sorted(units, key=lambda u: unit_sort_key(u, prioritize)):
            deadline = task_deadline(unit.task, ctx.horizon_end)
            allow_split = ctx.options.auto_split and unit.part_count is None
            placed = self.place_unit(unit, deadline, allow_split=allow_split)
            if placed:
                result.entries.extend(placed)
                continue
            result.conflicts.append(self._capacity_conflict(unit, deadline))

        logger.debug(
            "Allocated %d entries with %d conflicts for user %s (%d occupied slots)",
            len(result.entries),
            len(result.conflicts),
            ctx.user_id,
            len(self.detector),
        )
        return result

    def build_units(self, tasks: list[Task]) -> tuple[list[SchedulingUnit], list[Conflict]]:
        """
        Turn tasks into schedulable units, reporting invalid ones.

        Minutes already covered by pinned entries of the same task (and
        interval) are subtracted; only the remainder becomes a unit.
        """
        ctx = self.context
        pinned: dict[tuple[UUID, Optional[UUID]], int] = {}
        for entry in ctx.fixed_entries:
            key = (entry.task_id, entry.interval_id)
            pinned[key] = pinned.get(key, 0) + entry.duration_minutes
        units: list[SchedulingUnit] = []
        conflicts: list[Conflict] = []
        for order, task in enumerate(tasks):
            if task.status == TaskStatus.COMPLETED:
                continue
            if task.estimated_minutes <= 0:
                conflicts.append(
                    new_conflict(
                        ctx,
                        ConflictType.VALIDATION,
                        f'Task "{task.title}" has a non-positive duration '
                        f"({task.estimated_minutes} minutes)",
                        task=task,
                    )
                )
                continue
            if not task.intervals_consistent:
                conflicts.append(
                    new_conflict(
                        ctx,
                        ConflictType.VALIDATION,
                        f'Intervals of task "{task.title}" do not add up to '
                        f"{task.estimated_minutes} minutes",
                        task=task,
                    )
                )
                continue
            if not task.intervals:
                remaining = task.estimated_minutes - pinned.get((task.id, None), 0)
                if remaining > 0:
                    units.extend(self.split_long_unit(SchedulingUnit(task, remaining, order=order)))
                continue
            for interval in sorted(task.incomplete_intervals, key=lambda i: i.position):
                if interval.duration_minutes <= 0:
                    conflicts.append(
                        new_conflict(
                            ctx,
                            ConflictType.VALIDATION,
                            f'Interval {interval.position + 1} of task "{task.title}" '
                            "has a non-positive duration",
                            task=task,
                            interval_id=interval.id,
                        )
                    )
                    continue
                remaining = interval.duration_minutes - pinned.get((task.id, interval.id), 0)
                if remaining > 0:
                    units.append(SchedulingUnit(task, remaining, interval=interval, order=order))
        return units, conflicts

    def split_long_unit(self, unit: SchedulingUnit) -> list[SchedulingUnit]:
        """
        Cut a unit longer than the user's max_task_minutes into equal segments.

        Applies only when auto_split_long_tasks is on. Segments are placed as
        independent units and are not split again.
        """
        hours = self.context.working_hours
        if not hours.auto_split_long_tasks or unit.duration_minutes <= hours.max_task_minutes:
            return [unit]
        count = math.ceil(unit.duration_minutes / hours.max_task_minutes)
        durations = split_duration(unit.duration_minutes, count)
        logger.debug("Long task %r cut into %s minutes", unit.title, durations)
        return [
            SchedulingUnit(
                unit.task,
                duration,
                interval=unit.interval,
                order=unit.order,
                part_index=index,
                part_count=count,
            )
            for index, duration in enumerate(durations, start=1)
        ]

    def place_unit(
        self,
        unit: SchedulingUnit,
        deadline: datetime,
        allow_split: bool = True,
        not_before: Optional[datetime] = None,
    ) -> Optional[list[ScheduleEntry]]:
        """
        Place a unit whole, or split into pieces when no single range fits.

        Returns:
            The created entries, or None when the unit cannot be placed
            before the deadline (state is unchanged in that case)
        """
        span = self.reserve(unit.duration_minutes, deadline, not_before)
        if span:
            return [self.make_entry(unit, *span)]

        if not allow_split:
            return None
        return self.place_split(unit, deadline, not_before)

    def place_split(
        self,
        unit: SchedulingUnit,
        deadline: datetime,
        not_before: Optional[datetime] = None,
    ) -> Optional[list[ScheduleEntry]]:
        """Split a unit into the fewest pieces that fit and place every piece."""
        if self.capacity_before(deadline, not_before) < unit.duration_minutes:
            return None

        durations = self.plan_split(unit.duration_minutes, deadline, not_before)
        if not durations:
            return None
        entries: list[ScheduleEntry] = []
        for index, duration in enumerate(durations, start=1):
            span = self.reserve(duration, deadline, not_before)
            if span is None:
                raise RuntimeError(f"Split piece {index}/{len(durations)} lost its slot")
            entries.append(
                self.make_entry(unit, *span, part_index=index, part_count=len(durations))
            )
        logger.debug("Split %r into %s minutes", unit.title, durations)
        return entries

    def plan_split(
        self,
        total_minutes: int,
        deadline: datetime,
        not_before: Optional[datetime] = None,
    ) -> Optional[list[int]]:
        """
        Find the smallest interval count whose pieces all fit before the deadline.

        Placement is simulated on a copy of the free ranges.
        """
        min_piece = self.context.min_split_minutes
        max_count = max(2, total_minutes // min_piece)
        for count in range(2, max_count + 1):
            try:
                durations = split_duration(total_minutes, count)
            except ValidationError:
                continue
            if durations[0] < min_piece:
                break
            if durations[-1] < min_piece:
                continue
            trial = [r.copy() for r in self.ranges]
            if all(
                self._take(trial, duration, deadline, not_before) is not None
                for duration in durations
            ):
                return durations
        return None

    def capacity_before(self, deadline: datetime, not_before: Optional[datetime] = None) -> int:
        """Free minutes between not_before (or the horizon start) and the deadline."""
        total = 0
        for free in self.ranges:
            start = max(free.start, ceil_to_grid(not_before)) if not_before else free.start
            end = min(free.end, deadline)
            if end > start:
                total += minutes_between(start, end)
        return total

    def reserve(
        self,
        duration_minutes: int,
        deadline: datetime,
        not_before: Optional[datetime] = None,
    ) -> Optional[tuple[datetime, datetime]]:
        """
        Reserve the chosen slot for a duration and register it.

        Before committing, the conflict index is queried; a slot that clashes
        with a registered occupant is carved out of the free ranges and the
        search continues.
        """
        while True:
            candidate = self._choose(self.ranges, duration_minutes, deadline, not_before)
            if candidate is None:
                return None
            free, start = candidate
            end = start + timedelta(minutes=duration_minutes)
            clashes = self.detector.query_conflicts(start - self.buffer, end + self.buffer)
            if clashes:
                for occupant in clashes:
                    self._carve(occupant.start, occupant.end)
                continue
            self.ranges = self._consume(self.ranges, free, start, end)
            return start, end

    # ================================
    # RANGE SELECTION
    # ================================

    def _take(
        self,
        ranges: list[FreeRange],
        duration_minutes: int,
        deadline: datetime,
        not_before: Optional[datetime],
    ) -> Optional[tuple[datetime, datetime]]:
        """Reserve on a scratch list of ranges (no conflict index involved)."""
        candidate = self._choose(ranges, duration_minutes, deadline, not_before)
        if candidate is None:
            return None
        free, start = candidate
        end = start + timedelta(minutes=duration_minutes)
        ranges[:] = self._consume(ranges, free, start, end)
        return start, end

    def _choose(
        self,
        ranges: list[FreeRange],
        duration_minutes: int,
        deadline: datetime,
        not_before: Optional[datetime],
    ) -> Optional[tuple[FreeRange, datetime]]:
        needed = timedelta(minutes=duration_minutes)
        lower = ceil_to_grid(not_before) if not_before else None
        candidates: list[tuple[FreeRange, datetime, timedelta]] = []
        for free in ranges:
            start = max(free.start, lower) if lower else free.start
            room = min(free.end, deadline) - start
            if room >= needed:
                if not self.context.options.optimize_for_efficiency:
                    return free, start
                candidates.append((free, start, room))
        if not candidates:
            return None
        # Tightest fitting range first, earliest among equals
        free, start, _ = min(candidates, key=lambda c: (c[2], c[1]))
        return free, start

    def _consume(
        self, ranges: list[FreeRange], free: FreeRange, start: datetime, end: datetime
    ) -> list[FreeRange]:
        result: list[FreeRange] = []
        for current in ranges:
            if current is not free:
                result.append(current)
                continue
            before = start - self.buffer
            if before > current.start:
                result.append(FreeRange(current.day, current.start, before))
            resume = ceil_to_grid(end) + self.buffer
            if resume < current.end:
                result.append(FreeRange(current.day, resume, current.end))
        return result

    # ================================
    # ENTRIES & CONFLICTS
    # ================================

    def make_entry(
        self,
        unit: SchedulingUnit,
        start: datetime,
        end: datetime,
        part_index: Optional[int] = None,
        part_count: Optional[int] = None,
    ) -> ScheduleEntry:
        if part_count is None:
            part_index, part_count = unit.part_index, unit.part_count
        title = unit.title
        if part_count:
            title = f"{title} (Part {part_index}/{part_count})"
        entry = ScheduleEntry(
            id=uuid4(),
            user_id=self.context.user_id,
            task_id=unit.task.id,
            interval_id=unit.interval_id,
            title=title,
            start=start,
            end=end,
            priority=unit.task.priority,
            status=ScheduleEntryStatus.SCHEDULED,
            part_index=part_index,
            part_count=part_count,
        )
        self.detector.register_occupancy(entry)
        return entry

    def _capacity_conflict(self, unit: SchedulingUnit, deadline: datetime) -> Conflict:
        ctx = self.context
        due_bound = unit.task.due_date is not None and deadline < ctx.horizon_end
        if due_bound:
            kind = ConflictType.DUE_DATE_INFEASIBLE
            limit = "before its due date"
        else:
            kind = ConflictType.NO_AVAILABLE_SLOT
            limit = "in the scheduling horizon"
        free = self.capacity_before(deadline)
        if free < unit.duration_minutes:
            details = (
                f'Task "{unit.title}" needs {unit.duration_minutes} minutes but only '
                f"{free} free minutes remain {limit}"
            )
        else:
            details = (
                f'Task "{unit.title}" needs {unit.duration_minutes} minutes; {free} free '
                f"minutes remain {limit} but no free range or split of it fits"
            )
        logger.warning("Unplaced unit for user %s: %s", ctx.user_id, details)
        return new_conflict(ctx, kind, details, task=unit.task, interval_id=unit.interval_id)
