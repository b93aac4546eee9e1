"""
Interval splitting for tasks that are too large for one sitting.
"""

from __future__ import annotations

from math import ceil
from uuid import uuid4

from smart_scheduler.core.exceptions import ValidationError
from smart_scheduler.models.task import Task, TaskInterval


def split_duration(total_minutes: int, interval_count: int) -> list[int]:
    """
    Divide a duration into interval_count parts.

    Every part except the last is ceil(total/count); the last absorbs the
    remainder so the parts always sum to total_minutes.

    Example:
        >>> split_duration(130, 3)
        [44, 44, 42]

    Raises:
        ValidationError: non-positive total or count, or a count so large
            that the last part would be empty
    """
    if total_minutes <= 0:
        raise ValidationError(
            "Duration must be positive", details={"total_minutes": total_minutes}
        )
    if interval_count <= 0:
        raise ValidationError(
            "Interval count must be positive", details={"interval_count": interval_count}
        )

    size = ceil(total_minutes / interval_count)
    last = total_minutes - size * (interval_count - 1)
    if last <= 0:
        raise ValidationError(
            f"Cannot split {total_minutes} minutes into {interval_count} non-empty intervals",
            details={"total_minutes": total_minutes, "interval_count": interval_count},
        )
    return [size] * (interval_count - 1) + [last]


def resplit_task(task: Task, interval_count: int) -> list[TaskInterval]:
    """
    Build the new interval list for a task.

    Completed intervals are kept as-is and excluded from the split; incomplete
    ones are discarded and the remaining duration is split into fresh
    intervals placed after the completed ones.

    Returns:
        The task's full interval list (completed first, then new ones)
    """
    completed = sorted(
        (i for i in task.intervals if i.is_completed), key=lambda i: i.position
    )
    remaining = task.estimated_minutes - sum(i.duration_minutes for i in completed)
    if remaining <= 0:
        raise ValidationError(
            f"Task {task.id} has no remaining duration to split",
            details={"estimated_minutes": task.estimated_minutes, "remaining": remaining},
        )

    kept = [
        interval.model_copy(update={"position": index})
        for index, interval in enumerate(completed)
    ]
    fresh = [
        TaskInterval(
            id=uuid4(),
            task_id=task.id,
            duration_minutes=duration,
            is_completed=False,
            position=len(kept) + index,
        )
        for index, duration in enumerate(split_duration(remaining, interval_count))
    ]
    return kept + fresh
