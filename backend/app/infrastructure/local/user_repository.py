"""
SQLite implementation of user repository.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select

from app.core.exceptions import NotFoundError
from app.infrastructure.local.database import UserORM, get_session_factory
from app.interfaces.user_repository import IUserRepository
from app.models.user import UserAccount, UserCreate, WorkingHours
from app.utils.datetime_utils import ensure_utc, now_utc, to_naive_utc


class SqliteUserRepository(IUserRepository):
    """SQLite implementation of user repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: UserORM) -> UserAccount:
        return UserAccount(
            id=orm.id,
            email=orm.email,
            display_name=orm.display_name,
            timezone=orm.timezone or "UTC",
            workday_start_min=orm.workday_start_min,
            workday_end_min=orm.workday_end_min,
            created_at=ensure_utc(orm.created_at),
            updated_at=ensure_utc(orm.updated_at),
        )

    async def get(self, user_id: str) -> Optional[UserAccount]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserORM).where(UserORM.id == user_id)
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def get_by_email(self, email: str) -> Optional[UserAccount]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserORM).where(UserORM.email == email)
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def create(self, user_id: str, data: UserCreate) -> UserAccount:
        async with self._session_factory() as session:
            now = to_naive_utc(now_utc())
            orm = UserORM(
                id=user_id,
                email=data.email,
                display_name=data.display_name,
                timezone=data.timezone,
                workday_start_min=data.workday_start_min,
                workday_end_min=data.workday_end_min,
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def update_working_hours(self, user_id: str, hours: WorkingHours) -> UserAccount:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserORM).where(UserORM.id == user_id)
            )
            orm = result.scalar_one_or_none()
            if not orm:
                raise NotFoundError(f"User {user_id} not found")

            orm.workday_start_min = hours.workday_start_min
            orm.workday_end_min = hours.workday_end_min
            orm.updated_at = to_naive_utc(now_utc())
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def list_all(self) -> list[UserAccount]:
        async with self._session_factory() as session:
            result = await session.execute(select(UserORM).order_by(UserORM.created_at))
            return [self._orm_to_model(orm) for orm in result.scalars().all()]
