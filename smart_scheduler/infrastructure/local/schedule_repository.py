"""
SQLite implementation of the schedule repository.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import SQLAlchemyError

from smart_scheduler.core.exceptions import PersistenceError
from smart_scheduler.core.logger import setup_logger
from smart_scheduler.infrastructure.local.database import (
    ScheduleConflictORM,
    ScheduleEntryORM,
    get_session_factory,
)
from smart_scheduler.interfaces.schedule_repository import IScheduleRepository
from smart_scheduler.models.enums import (
    ConflictType,
    ResolutionAction,
    ScheduleEntryStatus,
    TaskPriority,
)
from smart_scheduler.models.schedule import Conflict, ScheduleEntry

logger = setup_logger(__name__)


class SqliteScheduleRepository(IScheduleRepository):
    """SQLite implementation of committed entries and conflicts."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    # ===========================================
    # Conversion
    # ===========================================

    def _entry_to_model(self, orm: ScheduleEntryORM) -> ScheduleEntry:
        return ScheduleEntry(
            id=UUID(orm.id),
            user_id=orm.user_id,
            task_id=UUID(orm.task_id),
            interval_id=UUID(orm.interval_id) if orm.interval_id else None,
            title=orm.title,
            start=orm.start_time,
            end=orm.end_time,
            priority=TaskPriority(orm.priority),
            status=ScheduleEntryStatus(orm.status),
            is_manual=bool(orm.is_manual),
            is_locked=bool(orm.is_locked),
            part_index=orm.part_index,
            part_count=orm.part_count,
        )

    def _entry_to_orm(self, entry: ScheduleEntry) -> ScheduleEntryORM:
        return ScheduleEntryORM(
            id=str(entry.id),
            user_id=entry.user_id,
            task_id=str(entry.task_id),
            interval_id=str(entry.interval_id) if entry.interval_id else None,
            title=entry.title,
            start_time=entry.start,
            end_time=entry.end,
            priority=entry.priority.value,
            status=entry.status.value,
            is_manual=entry.is_manual,
            is_locked=entry.is_locked,
            part_index=entry.part_index,
            part_count=entry.part_count,
        )

    def _conflict_to_model(self, orm: ScheduleConflictORM) -> Conflict:
        return Conflict(
            id=UUID(orm.id),
            user_id=orm.user_id,
            kind=ConflictType(orm.kind),
            entry_ids=[UUID(entry_id) for entry_id in (orm.entry_ids or [])],
            task_id=UUID(orm.task_id) if orm.task_id else None,
            interval_id=UUID(orm.interval_id) if orm.interval_id else None,
            details=orm.details or "",
            is_resolved=bool(orm.is_resolved),
            resolution_action=(
                ResolutionAction(orm.resolution_action) if orm.resolution_action else None
            ),
            created_at=orm.created_at,
            resolved_at=orm.resolved_at,
        )

    def _conflict_to_orm(self, conflict: Conflict) -> ScheduleConflictORM:
        return ScheduleConflictORM(
            id=str(conflict.id),
            user_id=conflict.user_id,
            kind=conflict.kind.value,
            entry_ids=[str(entry_id) for entry_id in conflict.entry_ids],
            task_id=str(conflict.task_id) if conflict.task_id else None,
            interval_id=str(conflict.interval_id) if conflict.interval_id else None,
            details=conflict.details,
            is_resolved=conflict.is_resolved,
            resolution_action=(
                conflict.resolution_action.value if conflict.resolution_action else None
            ),
            created_at=conflict.created_at,
            resolved_at=conflict.resolved_at,
        )

    # ===========================================
    # Reads
    # ===========================================

    async def list_entries(self, user_id: str) -> list[ScheduleEntry]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ScheduleEntryORM)
                    .where(ScheduleEntryORM.user_id == user_id)
                    .order_by(ScheduleEntryORM.start_time.asc(), ScheduleEntryORM.end_time.asc())
                )
                return [self._entry_to_model(orm) for orm in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load schedule entries: {e}") from e

    async def get_entry(self, user_id: str, entry_id: UUID) -> Optional[ScheduleEntry]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ScheduleEntryORM).where(
                        and_(
                            ScheduleEntryORM.id == str(entry_id),
                            ScheduleEntryORM.user_id == user_id,
                        )
                    )
                )
                orm = result.scalar_one_or_none()
                return self._entry_to_model(orm) if orm else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load schedule entry {entry_id}: {e}") from e

    async def list_conflicts(
        self,
        user_id: str,
        include_resolved: bool = False,
    ) -> list[Conflict]:
        try:
            async with self._session_factory() as session:
                query = select(ScheduleConflictORM).where(ScheduleConflictORM.user_id == user_id)
                if not include_resolved:
                    query = query.where(ScheduleConflictORM.is_resolved.is_(False))
                query = query.order_by(ScheduleConflictORM.created_at.asc())
                result = await session.execute(query)
                return [self._conflict_to_model(orm) for orm in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load conflicts: {e}") from e

    async def get_conflict(self, user_id: str, conflict_id: UUID) -> Optional[Conflict]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ScheduleConflictORM).where(
                        and_(
                            ScheduleConflictORM.id == str(conflict_id),
                            ScheduleConflictORM.user_id == user_id,
                        )
                    )
                )
                orm = result.scalar_one_or_none()
                return self._conflict_to_model(orm) if orm else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load conflict {conflict_id}: {e}") from e

    # ===========================================
    # Writes
    # ===========================================

    async def replace_schedule(
        self,
        user_id: str,
        entries: list[ScheduleEntry],
        conflicts: list[Conflict],
    ) -> None:
        async with self._session_factory() as session:
            try:
                await session.execute(
                    delete(ScheduleEntryORM).where(ScheduleEntryORM.user_id == user_id)
                )
                await session.execute(
                    delete(ScheduleConflictORM).where(ScheduleConflictORM.user_id == user_id)
                )
                session.add_all([self._entry_to_orm(entry) for entry in entries])
                session.add_all([self._conflict_to_orm(conflict) for conflict in conflicts])
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Schedule commit failed for user %s: %s", user_id, e)
                raise PersistenceError(
                    f"Failed to commit schedule: {e}", details={"user_id": user_id}
                ) from e

    async def apply_changes(
        self,
        user_id: str,
        upsert_entries: list[ScheduleEntry],
        delete_entry_ids: list[UUID],
        upsert_conflicts: list[Conflict],
    ) -> None:
        async with self._session_factory() as session:
            try:
                if delete_entry_ids:
                    await session.execute(
                        delete(ScheduleEntryORM).where(
                            and_(
                                ScheduleEntryORM.user_id == user_id,
                                ScheduleEntryORM.id.in_([str(i) for i in delete_entry_ids]),
                            )
                        )
                    )
                for entry in upsert_entries:
                    await session.merge(self._entry_to_orm(entry))
                for conflict in upsert_conflicts:
                    await session.merge(self._conflict_to_orm(conflict))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Schedule change failed for user %s: %s", user_id, e)
                raise PersistenceError(
                    f"Failed to apply schedule changes: {e}", details={"user_id": user_id}
                ) from e
