"""
Conflict resolution.

Turns a user-chosen action on an open conflict into a change set against the
committed schedule. The resolver only computes; ScheduleService persists the
result through IScheduleRepository.apply_changes.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional
from uuid import UUID

from smart_scheduler.core.exceptions import BusinessLogicError
from smart_scheduler.core.logger import setup_logger
from smart_scheduler.models.enums import ConflictType, ResolutionAction, ScheduleEntryStatus
from smart_scheduler.models.schedule import Conflict, ResolutionResult, ScheduleEntry
from smart_scheduler.models.task import Task
from smart_scheduler.services.slot_allocator import (
    SchedulingContext,
    SchedulingUnit,
    SlotAllocator,
    task_deadline,
)

logger = setup_logger(__name__)


class ConflictResolver:
    """
    Applies resolution actions to a user's committed schedule.

    Args:
        context: availability of the user (working hours, holidays, events)
            over the horizon in which entries may be moved
        entries: all committed entries of the user
        open_conflicts: all unresolved conflicts of the user
    """

    def __init__(
        self,
        context: SchedulingContext,
        entries: list[ScheduleEntry],
        open_conflicts: list[Conflict],
    ):
        self.context = context
        self.entries = entries
        self.open_conflicts = open_conflicts

    def resolve(
        self,
        conflict: Conflict,
        action: ResolutionAction,
        task: Optional[Task] = None,
    ) -> ResolutionResult:
        """
        Apply an action to a conflict.

        Args:
            conflict: the conflict to resolve
            action: the chosen resolution
            task: the conflict's task, required to place an unplaced unit or
                to split

        Returns:
            ResolutionResult; changed is False for an already resolved conflict

        Raises:
            BusinessLogicError: the action cannot be carried out
        """
        if conflict.is_resolved:
            return ResolutionResult(conflict=conflict, changed=False)

        attached = set(conflict.entry_ids)
        targets = [entry for entry in self.entries if entry.id in attached]

        if action == ResolutionAction.RESCHEDULE_TO_NEXT_SLOT:
            updated, removed = self._reschedule(conflict, targets, task)
        elif action == ResolutionAction.OVERRIDE_AND_KEEP:
            updated = [entry.model_copy(update={"is_manual": True}) for entry in targets]
            removed = []
        elif action == ResolutionAction.CANCEL_ENTRY:
            updated, removed = [], [entry.id for entry in targets]
        elif action == ResolutionAction.SPLIT_AND_RETRY:
            updated, removed = self._split_and_retry(conflict, targets, task)
        else:
            raise BusinessLogicError(f"Unsupported resolution action: {action}")

        # Targets left in place still need their status recomputed
        touched = {entry.id for entry in updated} | set(removed)
        updated = updated + [entry for entry in targets if entry.id not in touched]

        resolved = conflict.model_copy(
            update={
                "is_resolved": True,
                "resolution_action": action,
                "resolved_at": self.context.now,
            }
        )
        still_conflicted = {
            entry_id
            for other in self.open_conflicts
            if other.id != conflict.id
            for entry_id in other.entry_ids
        }
        updated = [
            entry.model_copy(
                update={
                    "status": ScheduleEntryStatus.CONFLICTED
                    if entry.id in still_conflicted
                    else ScheduleEntryStatus.SCHEDULED
                }
            )
            for entry in updated
        ]
        logger.info(
            "Resolved conflict %s with %s: %d updated, %d removed",
            conflict.id,
            action.value,
            len(updated),
            len(removed),
        )
        return ResolutionResult(conflict=resolved, entries=updated, removed_entry_ids=removed)

    # ================================
    # ACTIONS
    # ================================

    def _reschedule(
        self,
        conflict: Conflict,
        targets: list[ScheduleEntry],
        task: Optional[Task],
    ) -> tuple[list[ScheduleEntry], list[UUID]]:
        if not targets:
            unit = self._unplaced_unit(conflict, task)
            allocator = self._allocator(exclude=set())
            placed = allocator.place_unit(unit, self.context.horizon_end, allow_split=False)
            if not placed:
                raise BusinessLogicError(
                    f'No free slot for "{unit.title}" in the scheduling horizon',
                    details={"conflict_id": str(conflict.id)},
                )
            return placed, []

        movers = sorted(targets, key=lambda e: (e.start, e.end))
        if conflict.kind == ConflictType.OVERLAP and len(movers) > 1:
            movers = movers[1:]
        allocator = self._allocator(exclude={entry.id for entry in movers})
        moved: list[ScheduleEntry] = []
        for entry in movers:
            span = allocator.reserve(
                entry.duration_minutes, self.context.horizon_end, not_before=entry.start
            )
            if span is None:
                raise BusinessLogicError(
                    f'No free slot after {entry.start:%Y-%m-%d %H:%M} for "{entry.title}"',
                    details={"conflict_id": str(conflict.id), "entry_id": str(entry.id)},
                )
            start, end = span
            entry = entry.model_copy(update={"start": start, "end": end})
            allocator.detector.register_occupancy(entry)
            moved.append(entry)
        return moved, []

    def _split_and_retry(
        self,
        conflict: Conflict,
        targets: list[ScheduleEntry],
        task: Optional[Task],
    ) -> tuple[list[ScheduleEntry], list[UUID]]:
        if task is None:
            raise BusinessLogicError(
                "Only task-backed conflicts can be split",
                details={"conflict_id": str(conflict.id)},
            )
        if targets:
            interval = next(
                (i for i in task.intervals if i.id == targets[0].interval_id), None
            )
            unit = SchedulingUnit(
                task,
                sum(entry.duration_minutes for entry in targets),
                interval=interval,
            )
        else:
            unit = self._unplaced_unit(conflict, task)

        removed = [entry.id for entry in targets]
        allocator = self._allocator(exclude=set(removed))
        placed = allocator.place_split(unit, task_deadline(task, self.context.horizon_end))
        if not placed:
            raise BusinessLogicError(
                f'Cannot split "{unit.title}" into pieces that fit before its deadline',
                details={"conflict_id": str(conflict.id)},
            )
        return placed, removed

    # ================================
    # HELPERS
    # ================================

    def _allocator(self, exclude: set[UUID]) -> SlotAllocator:
        """Allocator over the horizon with every other committed entry as a blocker."""
        fixed = [entry for entry in self.entries if entry.id not in exclude]
        allocator = SlotAllocator(replace(self.context, fixed_entries=fixed))
        allocator.build_timeline(check_fixed_entries=False)
        return allocator

    @staticmethod
    def _unplaced_unit(conflict: Conflict, task: Optional[Task]) -> SchedulingUnit:
        if task is None:
            raise BusinessLogicError(
                "Conflict has no entries and its task is no longer pending",
                details={"conflict_id": str(conflict.id)},
            )
        if conflict.interval_id is not None:
            interval = next((i for i in task.intervals if i.id == conflict.interval_id), None)
            if interval is None or interval.is_completed:
                raise BusinessLogicError(
                    "Interval of the conflict no longer needs scheduling",
                    details={"conflict_id": str(conflict.id)},
                )
            duration = interval.duration_minutes
        else:
            interval = None
            duration = task.estimated_minutes - task.completed_minutes
        if duration <= 0:
            raise BusinessLogicError(
                f'Task "{task.title}" has no positive duration to schedule',
                details={"conflict_id": str(conflict.id), "duration_minutes": duration},
            )
        return SchedulingUnit(task, duration, interval=interval)
