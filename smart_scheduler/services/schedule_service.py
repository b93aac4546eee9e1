"""
Schedule service: the entry point collaborators call.

Each operation loads its inputs, computes in an isolated SchedulingContext and
commits the outcome in one repository call. Calls for the same user are
serialized with a per-user asyncio.Lock.
"""

from __future__ import annotations

import asyncio
import weakref
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from smart_scheduler.core.config import Settings, get_settings
from smart_scheduler.core.exceptions import NotFoundError, PersistenceError, ValidationError
from smart_scheduler.core.logger import setup_logger
from smart_scheduler.interfaces.preference_store import IPreferenceStore
from smart_scheduler.interfaces.schedule_repository import IScheduleRepository
from smart_scheduler.interfaces.task_source import ITaskIntervalStore, ITaskSource
from smart_scheduler.models.enums import ResolutionAction
from smart_scheduler.models.schedule import (
    Conflict,
    GenerateOptions,
    ResolutionResult,
    ScheduleEntry,
    ScheduleEntryUpdate,
    ScheduleResult,
    ScheduleStats,
)
from smart_scheduler.models.task import Task, TaskInterval
from smart_scheduler.services.conflict_resolver import ConflictResolver
from smart_scheduler.services.interval_splitter import resplit_task
from smart_scheduler.services.slot_allocator import SchedulingContext, SlotAllocator
from smart_scheduler.utils.datetime_utils import ceil_to_grid, start_of_day

logger = setup_logger(__name__)


def compute_stats(tasks: list[Task], entries: list[ScheduleEntry]) -> ScheduleStats:
    """Summary numbers for a generated schedule."""
    total_minutes = sum(entry.duration_minutes for entry in entries)
    return ScheduleStats(
        total_tasks=len(tasks),
        scheduled_entries=len(entries),
        total_minutes=total_minutes,
        average_minutes=round(total_minutes / len(entries), 2) if entries else 0.0,
    )


class ScheduleService:
    """
    Schedule generation, conflict resolution and interval splitting.

    Args:
        task_source: read access to pending tasks
        interval_store: rewrites a task's incomplete intervals
        preference_store: working hours, holidays and personal events
        schedule_repo: committed entries and conflicts
        settings: optional settings (defaults to get_settings())
        clock: returns the current local wall-clock time (for testing)
    """

    def __init__(
        self,
        task_source: ITaskSource,
        interval_store: ITaskIntervalStore,
        preference_store: IPreferenceStore,
        schedule_repo: IScheduleRepository,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._tasks = task_source
        self._intervals = interval_store
        self._preferences = preference_store
        self._schedule = schedule_repo
        self._settings = settings or get_settings()
        self._clock = clock or datetime.now
        # Locks are dropped once no call holds or waits on them
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    # ===========================================
    # Generation
    # ===========================================

    def resolve_horizon(
        self,
        options: GenerateOptions,
        now: datetime,
    ) -> tuple[datetime, datetime]:
        """
        Horizon of a run as [start, end).

        Starts at midnight of start_date, or at now rounded up to the grid;
        ends after end_date (inclusive), or DEFAULT_HORIZON_DAYS after the start.

        Raises:
            ValidationError: end_date lies before the start
        """
        if options.start_date is not None:
            horizon_start = start_of_day(options.start_date)
        else:
            horizon_start = ceil_to_grid(now)

        if options.end_date is not None:
            if options.end_date < horizon_start.date():
                raise ValidationError(
                    "End date must not be before the start date",
                    details={
                        "start_date": horizon_start.date().isoformat(),
                        "end_date": options.end_date.isoformat(),
                    },
                )
            last_day = options.end_date
        else:
            last_day = horizon_start.date() + timedelta(days=self._settings.DEFAULT_HORIZON_DAYS)
        return horizon_start, start_of_day(last_day + timedelta(days=1))

    async def _load_context(
        self,
        user_id: str,
        options: GenerateOptions,
        horizon_start: datetime,
        horizon_end: datetime,
        now: datetime,
        fixed_entries: Optional[list[ScheduleEntry]] = None,
    ) -> SchedulingContext:
        hours = await self._preferences.get_working_hours(user_id)
        holidays: list[date] = []
        if hours.holiday_calendar:
            holidays = await self._preferences.get_holidays(
                hours.holiday_calendar,
                horizon_start.date(),
                (horizon_end - timedelta(microseconds=1)).date(),
            )
        events = await self._preferences.get_personal_events(user_id, horizon_start, horizon_end)
        return SchedulingContext(
            user_id=user_id,
            options=options,
            working_hours=hours,
            horizon_start=horizon_start,
            horizon_end=horizon_end,
            holidays=frozenset(holidays),
            personal_events=events,
            fixed_entries=fixed_entries or [],
            now=now,
            min_split_minutes=self._settings.MIN_SPLIT_MINUTES,
        )

    async def generate(
        self,
        user_id: str,
        options: Optional[GenerateOptions] = None,
    ) -> ScheduleResult:
        """
        Build and commit a fresh schedule for the user.

        Pinned entries (manual or locked) are carried over unchanged; every
        other entry and every previous conflict is replaced.

        Raises:
            ValidationError: malformed date range
            PersistenceError: the commit failed (previous schedule kept)
        """
        options = options or GenerateOptions()
        async with self._lock_for(user_id):
            now = self._clock()
            horizon_start, horizon_end = self.resolve_horizon(options, now)
            logger.info(
                "Generating schedule for user %s from %s to %s",
                user_id,
                horizon_start.isoformat(),
                horizon_end.isoformat(),
            )

            tasks = await self._tasks.list_pending(user_id)
            existing = await self._schedule.list_entries(user_id)
            pinned = [entry for entry in existing if entry.is_pinned]
            context = await self._load_context(
                user_id, options, horizon_start, horizon_end, now, fixed_entries=pinned
            )

            allocation = SlotAllocator(context).allocate(tasks)
            entries = sorted(allocation.entries, key=lambda e: (e.start, e.end))

            await self._schedule.replace_schedule(user_id, entries, allocation.conflicts)

            stats = compute_stats(tasks, entries)
            logger.info(
                "Schedule for user %s: %d entries, %d conflicts, %d minutes",
                user_id,
                stats.scheduled_entries,
                len(allocation.conflicts),
                stats.total_minutes,
            )
            return ScheduleResult(entries=entries, conflicts=allocation.conflicts, stats=stats)

    # ===========================================
    # Conflict resolution
    # ===========================================

    async def resolve_conflict(
        self,
        user_id: str,
        conflict_id: UUID,
        action: ResolutionAction,
    ) -> ResolutionResult:
        """
        Apply a resolution action to an open conflict.

        Raises:
            NotFoundError: unknown conflict
            BusinessLogicError: the action cannot be carried out
        """
        async with self._lock_for(user_id):
            conflict = await self._schedule.get_conflict(user_id, conflict_id)
            if not conflict:
                raise NotFoundError(f"Conflict {conflict_id} not found")
            if conflict.is_resolved:
                logger.info("Conflict %s already resolved, nothing to do", conflict_id)
                return ResolutionResult(conflict=conflict, changed=False)

            entries = await self._schedule.list_entries(user_id)
            open_conflicts = await self._schedule.list_conflicts(user_id)
            attached = set(conflict.entry_ids)
            targets = [entry for entry in entries if entry.id in attached]

            task_id = conflict.task_id or (targets[0].task_id if targets else None)
            task = await self._tasks.get_task(user_id, task_id) if task_id else None

            now = self._clock()
            horizon_start = ceil_to_grid(now)
            last_day = max([now.date()] + [entry.end.date() for entry in targets])
            horizon_end = start_of_day(
                last_day + timedelta(days=self._settings.DEFAULT_HORIZON_DAYS + 1)
            )
            context = await self._load_context(
                user_id, GenerateOptions(), horizon_start, horizon_end, now
            )

            result = ConflictResolver(context, entries, open_conflicts).resolve(
                conflict, action, task
            )
            await self._schedule.apply_changes(
                user_id, result.entries, result.removed_entry_ids, [result.conflict]
            )
            return result

    # ===========================================
    # Intervals and manual edits
    # ===========================================

    async def split_task(
        self,
        user_id: str,
        task_id: UUID,
        interval_count: int,
    ) -> list[TaskInterval]:
        """
        Re-split a task's remaining duration into interval_count intervals.

        Completed intervals are preserved. Entries of the replaced intervals
        are removed from the schedule before the intervals are rewritten, so
        no entry ever points at an interval that no longer exists; the next
        generation places the new ones.

        Raises:
            NotFoundError: unknown task
            ValidationError: non-positive interval count or nothing left to split
            PersistenceError: a write failed
        """
        async with self._lock_for(user_id):
            task = await self._tasks.get_task(user_id, task_id)
            if not task:
                raise NotFoundError(f"Task {task_id} not found")

            intervals = resplit_task(task, interval_count)
            kept = {interval.id for interval in intervals if interval.is_completed}
            stale = [
                entry.id
                for entry in await self._schedule.list_entries(user_id)
                if entry.task_id == task_id and entry.interval_id not in kept
            ]
            if stale:
                await self._schedule.apply_changes(user_id, [], stale, [])

            try:
                stored = await self._intervals.replace_incomplete_intervals(
                    user_id, task_id, intervals
                )
            except PersistenceError:
                logger.error(
                    "Rewriting intervals of task %s failed after %d entries were removed",
                    task_id,
                    len(stale),
                )
                raise
            logger.info(
                "Split task %s into %d intervals (%d stale entries removed)",
                task_id,
                interval_count,
                len(stale),
            )
            return stored

    async def update_entry(
        self,
        user_id: str,
        entry_id: UUID,
        update: ScheduleEntryUpdate,
    ) -> ScheduleEntry:
        """
        Move and/or pin a committed entry.

        Moving an entry marks it manual so regeneration keeps it in place.

        Raises:
            NotFoundError: unknown entry
            ValidationError: the new end is not after the new start
        """
        async with self._lock_for(user_id):
            entry = await self._schedule.get_entry(user_id, entry_id)
            if not entry:
                raise NotFoundError(f"Schedule entry {entry_id} not found")

            start = update.start or entry.start
            end = update.end or entry.end
            if end <= start:
                raise ValidationError(
                    "Entry end must be after its start",
                    details={"start": start.isoformat(), "end": end.isoformat()},
                )
            moved = start != entry.start or end != entry.end

            changes: dict = {"start": start, "end": end}
            if update.is_manual is not None:
                changes["is_manual"] = update.is_manual
            elif moved:
                changes["is_manual"] = True
            if update.is_locked is not None:
                changes["is_locked"] = update.is_locked

            updated = entry.model_copy(update=changes)
            await self._schedule.apply_changes(user_id, [updated], [], [])
            return updated

    # ===========================================
    # Reads
    # ===========================================

    async def list_entries(self, user_id: str) -> list[ScheduleEntry]:
        return await self._schedule.list_entries(user_id)

    async def list_conflicts(
        self,
        user_id: str,
        include_resolved: bool = False,
    ) -> list[Conflict]:
        return await self._schedule.list_conflicts(user_id, include_resolved=include_resolved)
