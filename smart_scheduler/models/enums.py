"""
Enum definitions for the application.

These enums are used across models and provide type-safe status/priority values.
Values match the strings stored by the task and schedule tables.
"""

from enum import Enum


class TaskStatus(str, Enum):
    """Task status."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    """Task priority, from most to least pressing."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more pressing (urgent=4 .. low=1)."""
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    TaskPriority.URGENT: 4,
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}


class EventType(str, Enum):
    """Kind of personal calendar event."""

    PERSONAL = "personal"
    HOLIDAY = "holiday"
    MEETING = "meeting"
    BREAK = "break"


class ScheduleEntryStatus(str, Enum):
    """Status of a committed schedule entry."""

    SCHEDULED = "scheduled"
    CONFLICTED = "conflicted"


class ConflictType(str, Enum):
    """
    Kind of scheduling problem.

    OVERLAP = two occupants share time (pinned entries, personal events)
    DUE_DATE_INFEASIBLE = not enough free time before the due date
    VALIDATION = the unit or entry violates an input rule
    NO_AVAILABLE_SLOT = a unit does not fit into the horizon (no due date, or one beyond it)
    """

    OVERLAP = "overlap"
    DUE_DATE_INFEASIBLE = "due-date-infeasible"
    VALIDATION = "validation"
    NO_AVAILABLE_SLOT = "no-available-slot"


class ResolutionAction(str, Enum):
    """User-chosen action to resolve a conflict."""

    RESCHEDULE_TO_NEXT_SLOT = "reschedule-to-next-slot"
    OVERRIDE_AND_KEEP = "override-and-keep"
    CANCEL_ENTRY = "cancel-entry"
    SPLIT_AND_RETRY = "split-and-retry"
