"""
Preference store interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime

from smart_scheduler.models.preferences import PersonalEvent, WorkingHours


class IPreferenceStore(ABC):
    @abstractmethod
    async def get_working_hours(self, user_id: str) -> WorkingHours:
        """Working hours for the user (defaults when nothing is stored)."""
        pass

    @abstractmethod
    async def get_holidays(
        self,
        calendar_code: str,
        start_date: date,
        end_date: date,
    ) -> list[date]:
        """Holiday dates of a calendar within [start_date, end_date]."""
        pass

    @abstractmethod
    async def get_personal_events(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[PersonalEvent]:
        """Events overlapping [start, end), ordered by start."""
        pass
