"""
Task source interfaces.

The task source is a read adapter over the task CRUD collaborator. Interval
rewrites produced by split_task go through ITaskIntervalStore.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from smart_scheduler.models.task import Task, TaskInterval


class ITaskSource(ABC):
    @abstractmethod
    async def list_pending(self, user_id: str) -> list[Task]:
        """
        List tasks owned by or assigned to the user that are not completed.

        Tasks are returned in creation order with their intervals attached;
        the engine applies its own ordering policy.
        """
        pass

    @abstractmethod
    async def get_task(self, user_id: str, task_id: UUID) -> Optional[Task]:
        pass


class ITaskIntervalStore(ABC):
    @abstractmethod
    async def replace_incomplete_intervals(
        self,
        user_id: str,
        task_id: UUID,
        intervals: list[TaskInterval],
    ) -> list[TaskInterval]:
        """
        Delete the task's incomplete intervals and store the given ones.

        Completed intervals are left untouched. Returns the task's full
        interval list after the change, ordered by position.
        """
        pass
