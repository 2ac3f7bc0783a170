"""
SQLite implementation of Task repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, select, update as sa_update

from app.core.exceptions import InvalidStateError, NotFoundError
from app.interfaces.task_repository import ITaskRepository
from app.models.enums import CalendarProvider, Priority, TaskEventType, TaskSource, TaskStatus
from app.models.task import Task, TaskCreate, TaskUpdate
from app.models.task_event import TaskEvent, TaskEventCreate
from app.infrastructure.local.database import TaskEventORM, TaskORM, get_session_factory
from app.utils.datetime_utils import ensure_utc, now_utc, to_naive_utc

_DATETIME_FIELDS = ("scheduled_start", "scheduled_end")


class SqliteTaskRepository(ITaskRepository):
    """SQLite implementation of task repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: TaskORM) -> Task:
        """Convert ORM object to Pydantic model."""
        return Task(
            id=UUID(orm.id),
            user_id=orm.user_id,
            title=orm.title,
            description=orm.description,
            priority=Priority(orm.priority),
            estimated_duration_minutes=orm.estimated_duration_minutes,
            status=TaskStatus(orm.status),
            source=TaskSource(orm.source),
            scheduled_start=ensure_utc(orm.scheduled_start),
            scheduled_end=ensure_utc(orm.scheduled_end),
            external_event_id=orm.external_event_id,
            external_event_provider=(
                CalendarProvider(orm.external_event_provider)
                if orm.external_event_provider
                else None
            ),
            created_at=ensure_utc(orm.created_at),
            updated_at=ensure_utc(orm.updated_at),
        )

    def _event_to_model(self, orm: TaskEventORM) -> TaskEvent:
        return TaskEvent(
            id=UUID(orm.id),
            task_id=UUID(orm.task_id),
            user_id=orm.user_id,
            type=TaskEventType(orm.type),
            reason=orm.reason,
            created_at=ensure_utc(orm.created_at),
        )

    def _new_event(self, user_id: str, task_id: str, event: TaskEventCreate) -> TaskEventORM:
        return TaskEventORM(
            id=str(uuid4()),
            task_id=task_id,
            user_id=user_id,
            type=event.type.value,
            reason=event.reason,
            created_at=to_naive_utc(now_utc()),
        )

    async def _load(self, session, user_id: str, task_id: UUID) -> TaskORM:
        result = await session.execute(
            select(TaskORM).where(
                and_(TaskORM.id == str(task_id), TaskORM.user_id == user_id)
            )
        )
        orm = result.scalar_one_or_none()
        if not orm:
            raise NotFoundError(f"Task {task_id} not found")
        return orm

    async def create(self, user_id: str, task: TaskCreate) -> Task:
        """Create a new task."""
        async with self._session_factory() as session:
            now = to_naive_utc(now_utc())
            orm = TaskORM(
                id=str(uuid4()),
                user_id=user_id,
                title=task.title,
                description=task.description,
                priority=task.priority.value,
                estimated_duration_minutes=task.estimated_duration_minutes,
                status=TaskStatus.PENDING.value,
                source=task.source.value,
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            session.add(
                self._new_event(
                    user_id,
                    orm.id,
                    TaskEventCreate(type=TaskEventType.CREATED, reason=f"Created via {task.source.value}"),
                )
            )
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        """Get a task by ID."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM).where(
                    and_(TaskORM.id == str(task_id), TaskORM.user_id == user_id)
                )
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list(
        self,
        user_id: str,
        status: Optional[TaskStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Task]:
        """List tasks with optional status filter."""
        async with self._session_factory() as session:
            query = select(TaskORM).where(TaskORM.user_id == user_id)
            if status:
                query = query.where(TaskORM.status == status.value)

            query = query.order_by(TaskORM.created_at.desc())
            query = query.limit(limit).offset(offset)

            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def list_by_status(
        self, user_id: str, statuses: Iterable[TaskStatus]
    ) -> list[Task]:
        values = [s.value for s in statuses]
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM)
                .where(and_(TaskORM.user_id == user_id, TaskORM.status.in_(values)))
                .order_by(TaskORM.created_at.asc())
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def list_scheduled_in_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Task]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM)
                .where(
                    and_(
                        TaskORM.user_id == user_id,
                        TaskORM.status == TaskStatus.SCHEDULED.value,
                        TaskORM.scheduled_start.is_not(None),
                        TaskORM.scheduled_start < to_naive_utc(end),
                        TaskORM.scheduled_end > to_naive_utc(start),
                    )
                )
                .order_by(TaskORM.scheduled_start.asc())
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def list_created_in_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Task]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM)
                .where(
                    and_(
                        TaskORM.user_id == user_id,
                        TaskORM.created_at >= to_naive_utc(start),
                        TaskORM.created_at < to_naive_utc(end),
                    )
                )
                .order_by(TaskORM.created_at.asc())
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def update(
        self,
        user_id: str,
        task_id: UUID,
        update: TaskUpdate,
        event: Optional[TaskEventCreate] = None,
        expected_statuses: Optional[Iterable[TaskStatus]] = None,
    ) -> Task:
        """Update an existing task."""
        async with self._session_factory() as session:
            orm = await self._load(session, user_id, task_id)

            if expected_statuses is not None:
                allowed = {s.value for s in expected_statuses}
                if orm.status not in allowed:
                    raise InvalidStateError(
                        f"Task {task_id} is {orm.status}",
                        details={"expected": sorted(allowed)},
                    )

            update_data = update.model_dump(exclude_unset=True)
            for field, value in update_data.items():
                if field in _DATETIME_FIELDS:
                    value = to_naive_utc(value)
                elif hasattr(value, "value"):  # Enum
                    value = value.value
                setattr(orm, field, value)

            orm.updated_at = to_naive_utc(now_utc())

            if event is not None:
                session.add(self._new_event(user_id, orm.id, event))

            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def swap_intervals(
        self, user_id: str, task_id_a: UUID, task_id_b: UUID, reason: str
    ) -> tuple[Task, Task]:
        async with self._session_factory() as session:
            a = await self._load(session, user_id, task_id_a)
            b = await self._load(session, user_id, task_id_b)
            for orm in (a, b):
                if orm.scheduled_start is None or orm.scheduled_end is None:
                    raise InvalidStateError(f"Task {orm.id} has no scheduled interval")

            a.scheduled_start, b.scheduled_start = b.scheduled_start, a.scheduled_start
            a.scheduled_end, b.scheduled_end = b.scheduled_end, a.scheduled_end
            now = to_naive_utc(now_utc())
            for orm in (a, b):
                orm.updated_at = now
                session.add(
                    self._new_event(
                        user_id,
                        orm.id,
                        TaskEventCreate(type=TaskEventType.RESCHEDULED, reason=reason),
                    )
                )

            await session.commit()
            await session.refresh(a)
            await session.refresh(b)
            return self._orm_to_model(a), self._orm_to_model(b)

    async def reset_schedules(
        self, user_id: str, statuses: Iterable[TaskStatus]
    ) -> int:
        values = [s.value for s in statuses]
        async with self._session_factory() as session:
            result = await session.execute(
                sa_update(TaskORM)
                .where(and_(TaskORM.user_id == user_id, TaskORM.status.in_(values)))
                .values(
                    status=TaskStatus.PENDING.value,
                    scheduled_start=None,
                    scheduled_end=None,
                    external_event_id=None,
                    external_event_provider=None,
                    updated_at=to_naive_utc(now_utc()),
                )
            )
            await session.commit()
            return result.rowcount or 0

    async def delete(self, user_id: str, task_id: UUID) -> bool:
        """Delete a task."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM).where(
                    and_(TaskORM.id == str(task_id), TaskORM.user_id == user_id)
                )
            )
            orm = result.scalar_one_or_none()

            if not orm:
                return False

            await session.execute(
                delete(TaskEventORM).where(TaskEventORM.task_id == str(task_id))
            )
            await session.delete(orm)
            await session.commit()
            return True

    async def append_event(
        self, user_id: str, task_id: UUID, event: TaskEventCreate
    ) -> TaskEvent:
        async with self._session_factory() as session:
            orm = await self._load(session, user_id, task_id)
            event_orm = self._new_event(user_id, orm.id, event)
            session.add(event_orm)
            await session.commit()
            await session.refresh(event_orm)
            return self._event_to_model(event_orm)

    async def list_events(self, user_id: str, task_id: UUID) -> list[TaskEvent]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskEventORM)
                .where(
                    and_(
                        TaskEventORM.task_id == str(task_id),
                        TaskEventORM.user_id == user_id,
                    )
                )
                .order_by(TaskEventORM.created_at.asc())
            )
            return [self._event_to_model(orm) for orm in result.scalars().all()]
