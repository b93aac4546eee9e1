"""
Shared fixtures: in-memory SQLite database and seeding helpers.
"""

from datetime import date, datetime
from typing import Optional
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from smart_scheduler.infrastructure.local.database import (
    Base,
    HolidayORM,
    PersonalEventORM,
    TaskIntervalORM,
    TaskORM,
)
from smart_scheduler.infrastructure.local.preference_repository import SqlitePreferenceStore
from smart_scheduler.infrastructure.local.schedule_repository import SqliteScheduleRepository
from smart_scheduler.infrastructure.local.task_repository import SqliteTaskRepository


@pytest.fixture
async def engine():
    """Create an in-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def user_id():
    return "test_user_123"


@pytest.fixture
def task_repo(session_factory):
    return SqliteTaskRepository(session_factory=session_factory)


@pytest.fixture
def preference_store(session_factory):
    return SqlitePreferenceStore(session_factory=session_factory)


@pytest.fixture
def schedule_repo(session_factory):
    return SqliteScheduleRepository(session_factory=session_factory)


@pytest.fixture
def add_task(session_factory, user_id):
    """Insert a task (and optional intervals) and return its id as a string."""

    async def _add(
        title: str = "Task",
        estimated_minutes: int = 60,
        priority: str = "medium",
        due_date: Optional[datetime] = None,
        status: str = "todo",
        created_at: Optional[datetime] = None,
        owner: Optional[str] = None,
        assigned_to: Optional[str] = None,
        intervals: Optional[list[tuple[int, bool]]] = None,
    ) -> str:
        task_id = str(uuid4())
        async with session_factory() as session:
            session.add(
                TaskORM(
                    id=task_id,
                    user_id=owner or user_id,
                    assigned_to=assigned_to,
                    title=title,
                    estimated_minutes=estimated_minutes,
                    priority=priority,
                    due_date=due_date,
                    status=status,
                    created_at=created_at or datetime(2026, 3, 1, 12, 0),
                )
            )
            for position, (minutes, completed) in enumerate(intervals or []):
                session.add(
                    TaskIntervalORM(
                        id=str(uuid4()),
                        task_id=task_id,
                        duration_minutes=minutes,
                        is_completed=completed,
                        position=position,
                    )
                )
            await session.commit()
        return task_id

    return _add


@pytest.fixture
def add_event(session_factory, user_id):
    async def _add(start: datetime, end: datetime, title: str = "Event") -> str:
        event_id = str(uuid4())
        async with session_factory() as session:
            session.add(
                PersonalEventORM(
                    id=event_id,
                    user_id=user_id,
                    title=title,
                    start_time=start,
                    end_time=end,
                    event_type="personal",
                )
            )
            await session.commit()
        return event_id

    return _add


@pytest.fixture
def add_holiday(session_factory):
    async def _add(calendar_code: str, holiday_date: date, name: str = "Holiday") -> None:
        async with session_factory() as session:
            session.add(
                HolidayORM(
                    id=str(uuid4()),
                    calendar_code=calendar_code,
                    holiday_date=holiday_date,
                    name=name,
                )
            )
            await session.commit()

    return _add
