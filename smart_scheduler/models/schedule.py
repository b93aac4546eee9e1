"""
Schedule models: run options, committed entries and conflicts.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from smart_scheduler.models.enums import (
    ConflictType,
    ResolutionAction,
    ScheduleEntryStatus,
    TaskPriority,
)


class GenerateOptions(BaseModel):
    """Configuration of one generation run."""

    start_date: Optional[date] = Field(
        None, description="First day of the horizon (None = from now)"
    )
    end_date: Optional[date] = Field(
        None, description="Last day of the horizon, inclusive (None = default horizon)"
    )
    respect_personal_events: bool = Field(
        True, description="Treat personal events as hard blockers"
    )
    allow_manual_override: bool = Field(
        True, description="Keep pinned entries outside working windows without a conflict"
    )
    prioritize_urgent_tasks: bool = Field(
        True, description="Priority-first ordering (False = due-date-only ordering)"
    )
    optimize_for_efficiency: bool = Field(
        False, description="Pack into the tightest fitting free range instead of the earliest"
    )
    auto_split: bool = Field(
        True, description="Split units that fit no single free range"
    )


class ScheduleEntry(BaseModel):
    """A concrete time slot for a task or one of its intervals."""

    id: UUID
    user_id: str
    task_id: UUID
    interval_id: Optional[UUID] = None
    title: str
    start: datetime
    end: datetime
    priority: TaskPriority
    status: ScheduleEntryStatus = ScheduleEntryStatus.SCHEDULED
    is_manual: bool = False
    is_locked: bool = False
    part_index: Optional[int] = Field(None, ge=1, description="1-based piece number when split")
    part_count: Optional[int] = Field(None, ge=2)

    @property
    def is_pinned(self) -> bool:
        """Pinned entries survive regeneration unchanged."""
        return self.is_manual or self.is_locked

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


class ScheduleEntryUpdate(BaseModel):
    """Manual change to a committed entry."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    is_locked: Optional[bool] = None
    is_manual: Optional[bool] = None


class Conflict(BaseModel):
    """A recorded scheduling problem requiring resolution."""

    id: UUID
    user_id: str
    kind: ConflictType
    entry_ids: list[UUID] = Field(default_factory=list)
    task_id: Optional[UUID] = None
    interval_id: Optional[UUID] = None
    details: str = ""
    is_resolved: bool = False
    resolution_action: Optional[ResolutionAction] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class ScheduleStats(BaseModel):
    """Summary of a generated schedule."""

    total_tasks: int = 0
    scheduled_entries: int = 0
    total_minutes: int = 0
    average_minutes: float = 0.0


class ScheduleResult(BaseModel):
    """Output of one generation run."""

    entries: list[ScheduleEntry] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    stats: ScheduleStats = Field(default_factory=ScheduleStats)


class ResolutionResult(BaseModel):
    """Outcome of applying a resolution action."""

    conflict: Conflict
    entries: list[ScheduleEntry] = Field(
        default_factory=list, description="Entries updated or created"
    )
    removed_entry_ids: list[UUID] = Field(default_factory=list)
    changed: bool = True
