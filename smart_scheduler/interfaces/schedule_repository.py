"""
Schedule repository interface (entries and conflicts owned by the engine).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from smart_scheduler.models.schedule import Conflict, ScheduleEntry


class IScheduleRepository(ABC):
    @abstractmethod
    async def list_entries(self, user_id: str) -> list[ScheduleEntry]:
        pass

    @abstractmethod
    async def get_entry(self, user_id: str, entry_id: UUID) -> Optional[ScheduleEntry]:
        pass

    @abstractmethod
    async def list_conflicts(
        self,
        user_id: str,
        include_resolved: bool = False,
    ) -> list[Conflict]:
        pass

    @abstractmethod
    async def get_conflict(self, user_id: str, conflict_id: UUID) -> Optional[Conflict]:
        pass

    @abstractmethod
    async def replace_schedule(
        self,
        user_id: str,
        entries: list[ScheduleEntry],
        conflicts: list[Conflict],
    ) -> None:
        """
        Replace all of the user's entries and conflicts in one transaction.

        Raises:
            PersistenceError: nothing is written when the commit fails
        """
        pass

    @abstractmethod
    async def apply_changes(
        self,
        user_id: str,
        upsert_entries: list[ScheduleEntry],
        delete_entry_ids: list[UUID],
        upsert_conflicts: list[Conflict],
    ) -> None:
        """
        Apply a partial change set (resolution, manual edit) atomically.

        Raises:
            PersistenceError: nothing is written when the commit fails
        """
        pass
