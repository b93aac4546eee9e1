"""
SQLite implementation of the preference store.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError

from smart_scheduler.core.exceptions import PersistenceError
from smart_scheduler.infrastructure.local.database import (
    HolidayORM,
    PersonalEventORM,
    WorkingHoursORM,
    get_session_factory,
)
from smart_scheduler.interfaces.preference_store import IPreferenceStore
from smart_scheduler.models.enums import EventType
from smart_scheduler.models.preferences import (
    PersonalEvent,
    WorkingHours,
    default_working_hours,
)
from smart_scheduler.utils.datetime_utils import format_time_of_day, parse_time_of_day


class SqlitePreferenceStore(IPreferenceStore):
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_working_hours(self, orm: WorkingHoursORM) -> WorkingHours:
        defaults = default_working_hours()
        return WorkingHours(
            start=parse_time_of_day(orm.start_time or "") or defaults.start,
            end=parse_time_of_day(orm.end_time or "") or defaults.end,
            days=frozenset(orm.days if orm.days is not None else defaults.days),
            holiday_calendar=orm.holiday_calendar or defaults.holiday_calendar,
            auto_split_long_tasks=bool(orm.auto_split_long_tasks),
            max_task_minutes=orm.max_task_minutes or defaults.max_task_minutes,
            work_buffer_minutes=orm.work_buffer_minutes or 0,
        )

    def _orm_to_event(self, orm: PersonalEventORM) -> PersonalEvent:
        return PersonalEvent(
            id=UUID(orm.id),
            user_id=orm.user_id,
            title=orm.title or "",
            start=orm.start_time,
            end=orm.end_time,
            event_type=EventType(orm.event_type),
        )

    async def get_working_hours(self, user_id: str) -> WorkingHours:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(WorkingHoursORM).where(WorkingHoursORM.user_id == user_id)
                )
                orm = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load working hours: {e}") from e
        return self._orm_to_working_hours(orm) if orm else default_working_hours()

    async def save_working_hours(self, user_id: str, hours: WorkingHours) -> WorkingHours:
        """Create or replace the user's working hours."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(WorkingHoursORM).where(WorkingHoursORM.user_id == user_id)
                )
                orm = result.scalar_one_or_none()
                if orm is None:
                    orm = WorkingHoursORM(user_id=user_id)
                    session.add(orm)
                orm.start_time = format_time_of_day(hours.start)
                orm.end_time = format_time_of_day(hours.end)
                orm.days = sorted(hours.days)
                orm.holiday_calendar = hours.holiday_calendar
                orm.auto_split_long_tasks = hours.auto_split_long_tasks
                orm.max_task_minutes = hours.max_task_minutes
                orm.work_buffer_minutes = hours.work_buffer_minutes
                await session.commit()
                await session.refresh(orm)
                return self._orm_to_working_hours(orm)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save working hours: {e}") from e

    async def get_holidays(
        self,
        calendar_code: str,
        start_date: date,
        end_date: date,
    ) -> list[date]:
        if not calendar_code:
            return []
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(HolidayORM.holiday_date)
                    .where(
                        and_(
                            HolidayORM.calendar_code == calendar_code,
                            HolidayORM.holiday_date >= start_date,
                            HolidayORM.holiday_date <= end_date,
                        )
                    )
                    .order_by(HolidayORM.holiday_date.asc())
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load holidays: {e}") from e

    async def get_personal_events(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[PersonalEvent]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(PersonalEventORM)
                    .where(
                        and_(
                            PersonalEventORM.user_id == user_id,
                            PersonalEventORM.start_time < end,
                            PersonalEventORM.end_time > start,
                        )
                    )
                    .order_by(PersonalEventORM.start_time.asc())
                )
                return [self._orm_to_event(orm) for orm in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load personal events: {e}") from e
