"""Pydantic models (schemas) for the scheduling engine."""

from smart_scheduler.models.enums import (
    ConflictType,
    EventType,
    ResolutionAction,
    ScheduleEntryStatus,
    TaskPriority,
    TaskStatus,
)
from smart_scheduler.models.preferences import PersonalEvent, WorkingHours, default_working_hours
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

__all__ = [
    # Enums
    "TaskStatus",
    "TaskPriority",
    "EventType",
    "ScheduleEntryStatus",
    "ConflictType",
    "ResolutionAction",
    # Task
    "Task",
    "TaskInterval",
    # Availability
    "WorkingHours",
    "PersonalEvent",
    "default_working_hours",
    # Schedule
    "GenerateOptions",
    "ScheduleEntry",
    "ScheduleEntryUpdate",
    "Conflict",
    "ScheduleStats",
    "ScheduleResult",
    "ResolutionResult",
]
