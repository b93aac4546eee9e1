"""
Task model definitions.

Tasks and their intervals are owned by the task CRUD collaborators; the
scheduling engine only reads them (and rewrites incomplete intervals on split).
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from smart_scheduler.models.enums import TaskPriority, TaskStatus


class TaskInterval(BaseModel):
    """A sub-division of a task's total duration."""

    id: UUID
    task_id: UUID
    duration_minutes: int = Field(..., description="Interval length in minutes")
    scheduled_start: Optional[datetime] = None
    is_completed: bool = False
    position: int = Field(0, ge=0, description="Order within the task")


class Task(BaseModel):
    """Task as supplied by the task source."""

    id: UUID
    user_id: str = Field(..., description="Owner user ID")
    team_id: Optional[UUID] = None
    assigned_to: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    # Not range-checked: non-positive estimates are reported as validation conflicts
    estimated_minutes: int
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    status: TaskStatus = TaskStatus.TODO
    created_at: datetime
    intervals: list[TaskInterval] = Field(default_factory=list)

    @property
    def completed_minutes(self) -> int:
        return sum(i.duration_minutes for i in self.intervals if i.is_completed)

    @property
    def incomplete_intervals(self) -> list[TaskInterval]:
        return [i for i in self.intervals if not i.is_completed]

    @property
    def intervals_consistent(self) -> bool:
        """True when the intervals (if any) sum to the estimate."""
        if not self.intervals:
            return True
        return sum(i.duration_minutes for i in self.intervals) == self.estimated_minutes
