"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM models and database initialization.
"""

from functools import lru_cache
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from smart_scheduler.core.config import get_settings
from smart_scheduler.utils.datetime_utils import utcnow_naive


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ===========================================
# Task data (owned by the task CRUD side)
# ===========================================


class TaskORM(Base):
    """Task ORM model."""

    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    team_id = Column(String(36), nullable=True, index=True)
    assigned_to = Column(String(255), nullable=True, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    estimated_minutes = Column(Integer, nullable=False, default=0)
    priority = Column(String(10), default="medium")
    due_date = Column(DateTime, nullable=True)
    status = Column(String(20), default="todo", index=True)
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class TaskIntervalORM(Base):
    """Task interval ORM model."""

    __tablename__ = "task_intervals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    task_id = Column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False)
    scheduled_start = Column(DateTime, nullable=True)
    is_completed = Column(Boolean, default=False)
    position = Column(Integer, nullable=False, default=0)


# ===========================================
# Availability
# ===========================================


class WorkingHoursORM(Base):
    """Per-user working hours preference."""

    __tablename__ = "working_hours"

    user_id = Column(String(255), primary_key=True)
    start_time = Column(String(5), nullable=False, default="09:00")  # HH:MM
    end_time = Column(String(5), nullable=False, default="17:00")
    days = Column(JSON, nullable=False, default=lambda: [0, 1, 2, 3, 4])
    holiday_calendar = Column(String(50), nullable=True)
    auto_split_long_tasks = Column(Boolean, nullable=False, default=False)
    max_task_minutes = Column(Integer, nullable=False, default=180)
    work_buffer_minutes = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class HolidayORM(Base):
    """Holiday date of a calendar."""

    __tablename__ = "holidays"
    __table_args__ = (UniqueConstraint("calendar_code", "holiday_date"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    calendar_code = Column(String(50), nullable=False, index=True)
    holiday_date = Column(Date, nullable=False, index=True)
    name = Column(String(200), nullable=True)


class PersonalEventORM(Base):
    """Personal calendar event ORM model."""

    __tablename__ = "personal_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=False, default="")
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    event_type = Column(String(20), default="personal")


# ===========================================
# Schedule (owned by the engine)
# ===========================================


class ScheduleEntryORM(Base):
    """Committed schedule entry ORM model."""

    __tablename__ = "schedule_entries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    task_id = Column(String(36), nullable=False, index=True)
    interval_id = Column(String(36), nullable=True)
    title = Column(String(500), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    priority = Column(String(10), nullable=False)
    status = Column(String(20), default="scheduled")
    is_manual = Column(Boolean, default=False)
    is_locked = Column(Boolean, default=False)
    part_index = Column(Integer, nullable=True)
    part_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class ScheduleConflictORM(Base):
    """Recorded scheduling conflict ORM model."""

    __tablename__ = "schedule_conflicts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    kind = Column(String(30), nullable=False)
    entry_ids = Column(JSON, nullable=False, default=list)  # list of entry id strings
    task_id = Column(String(36), nullable=True)
    interval_id = Column(String(36), nullable=True)
    details = Column(Text, nullable=False, default="")
    is_resolved = Column(Boolean, default=False, index=True)
    resolution_action = Column(String(30), nullable=True)
    created_at = Column(DateTime, nullable=False)
    resolved_at = Column(DateTime, nullable=True)


# ===========================================
# Database Session Management
# ===========================================


@lru_cache()
def get_engine():
    """Get async engine instance."""
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def get_session_factory():
    """Get async session factory."""
    engine = get_engine()
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Initialize database tables."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
