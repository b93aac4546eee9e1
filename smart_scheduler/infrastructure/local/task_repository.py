"""
SQLite implementation of the task source and interval store.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import SQLAlchemyError

from smart_scheduler.core.exceptions import NotFoundError, PersistenceError
from smart_scheduler.core.logger import setup_logger
from smart_scheduler.infrastructure.local.database import (
    TaskIntervalORM,
    TaskORM,
    get_session_factory,
)
from smart_scheduler.interfaces.task_source import ITaskIntervalStore, ITaskSource
from smart_scheduler.models.enums import TaskPriority, TaskStatus
from smart_scheduler.models.task import Task, TaskInterval

logger = setup_logger(__name__)


class SqliteTaskRepository(ITaskSource, ITaskIntervalStore):
    """SQLite implementation of task reads and interval rewrites."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _interval_to_model(self, orm: TaskIntervalORM) -> TaskInterval:
        return TaskInterval(
            id=UUID(orm.id),
            task_id=UUID(orm.task_id),
            duration_minutes=orm.duration_minutes,
            scheduled_start=orm.scheduled_start,
            is_completed=bool(orm.is_completed),
            position=orm.position,
        )

    def _orm_to_model(self, orm: TaskORM, intervals: list[TaskIntervalORM]) -> Task:
        """Convert ORM object to Pydantic model."""
        return Task(
            id=UUID(orm.id),
            user_id=orm.user_id,
            team_id=UUID(orm.team_id) if orm.team_id else None,
            assigned_to=orm.assigned_to,
            title=orm.title,
            description=orm.description,
            estimated_minutes=orm.estimated_minutes or 0,
            priority=TaskPriority(orm.priority),
            due_date=orm.due_date,
            status=TaskStatus(orm.status),
            created_at=orm.created_at,
            intervals=[self._interval_to_model(i) for i in intervals],
        )

    @staticmethod
    def _visible_to(user_id: str):
        return or_(TaskORM.user_id == user_id, TaskORM.assigned_to == user_id)

    async def _load_intervals(self, session, task_ids: list[str]) -> dict[str, list[TaskIntervalORM]]:
        grouped: dict[str, list[TaskIntervalORM]] = {task_id: [] for task_id in task_ids}
        if not task_ids:
            return grouped
        result = await session.execute(
            select(TaskIntervalORM)
            .where(TaskIntervalORM.task_id.in_(task_ids))
            .order_by(TaskIntervalORM.position.asc())
        )
        for orm in result.scalars().all():
            grouped[orm.task_id].append(orm)
        return grouped

    async def list_pending(self, user_id: str) -> list[Task]:
        """List owned or assigned tasks that are not completed, in creation order."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TaskORM)
                    .where(
                        and_(
                            self._visible_to(user_id),
                            TaskORM.status != TaskStatus.COMPLETED.value,
                        )
                    )
                    .order_by(TaskORM.created_at.asc(), TaskORM.id.asc())
                )
                tasks = list(result.scalars().all())
                intervals = await self._load_intervals(session, [t.id for t in tasks])
                return [self._orm_to_model(t, intervals[t.id]) for t in tasks]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load tasks: {e}") from e

    async def get_task(self, user_id: str, task_id: UUID) -> Optional[Task]:
        """Get a task by ID."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TaskORM).where(
                        and_(TaskORM.id == str(task_id), self._visible_to(user_id))
                    )
                )
                orm = result.scalar_one_or_none()
                if not orm:
                    return None
                intervals = await self._load_intervals(session, [orm.id])
                return self._orm_to_model(orm, intervals[orm.id])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load task {task_id}: {e}") from e

    async def replace_incomplete_intervals(
        self,
        user_id: str,
        task_id: UUID,
        intervals: list[TaskInterval],
    ) -> list[TaskInterval]:
        """Swap the task's incomplete intervals for the given ones in one transaction."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TaskORM).where(
                        and_(TaskORM.id == str(task_id), self._visible_to(user_id))
                    )
                )
                if not result.scalar_one_or_none():
                    raise NotFoundError(f"Task {task_id} not found")

                await session.execute(
                    delete(TaskIntervalORM).where(
                        and_(
                            TaskIntervalORM.task_id == str(task_id),
                            TaskIntervalORM.is_completed.is_(False),
                        )
                    )
                )
                result = await session.execute(
                    select(TaskIntervalORM).where(TaskIntervalORM.task_id == str(task_id))
                )
                completed = {orm.id: orm for orm in result.scalars().all()}

                for interval in intervals:
                    existing = completed.get(str(interval.id))
                    if existing is not None:
                        existing.position = interval.position
                        continue
                    if interval.is_completed:
                        continue
                    session.add(
                        TaskIntervalORM(
                            id=str(interval.id),
                            task_id=str(task_id),
                            duration_minutes=interval.duration_minutes,
                            scheduled_start=interval.scheduled_start,
                            is_completed=False,
                            position=interval.position,
                        )
                    )
                await session.commit()

                grouped = await self._load_intervals(session, [str(task_id)])
                stored = [self._interval_to_model(orm) for orm in grouped[str(task_id)]]
                logger.info("Stored %d intervals for task %s", len(stored), task_id)
                return stored
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store intervals of task {task_id}: {e}") from e
