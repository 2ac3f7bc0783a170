"""
SQLite implementation of calendar account repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, select

from app.core.exceptions import NotFoundError
from app.infrastructure.local.database import CalendarAccountORM, get_session_factory
from app.interfaces.calendar_account_repository import ICalendarAccountRepository
from app.models.calendar import CalendarAccount, CalendarAccountUpsert
from app.models.enums import CalendarProvider
from app.utils.datetime_utils import ensure_utc, now_utc, to_naive_utc


class SqliteCalendarAccountRepository(ICalendarAccountRepository):
    """SQLite implementation of linked calendar accounts."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: CalendarAccountORM) -> CalendarAccount:
        return CalendarAccount(
            id=UUID(orm.id),
            user_id=orm.user_id,
            provider=CalendarProvider(orm.provider),
            access_token=orm.access_token,
            refresh_token=orm.refresh_token,
            expires_at=ensure_utc(orm.expires_at),
            created_at=ensure_utc(orm.created_at),
            updated_at=ensure_utc(orm.updated_at),
        )

    async def _find(self, session, user_id: str, provider: CalendarProvider):
        result = await session.execute(
            select(CalendarAccountORM).where(
                and_(
                    CalendarAccountORM.user_id == user_id,
                    CalendarAccountORM.provider == provider.value,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: str) -> list[CalendarAccount]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CalendarAccountORM)
                .where(CalendarAccountORM.user_id == user_id)
                .order_by(CalendarAccountORM.provider)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def get(self, user_id: str, provider: CalendarProvider) -> Optional[CalendarAccount]:
        async with self._session_factory() as session:
            orm = await self._find(session, user_id, provider)
            return self._orm_to_model(orm) if orm else None

    async def upsert(self, user_id: str, data: CalendarAccountUpsert) -> CalendarAccount:
        async with self._session_factory() as session:
            now = to_naive_utc(now_utc())
            orm = await self._find(session, user_id, data.provider)
            if orm is None:
                orm = CalendarAccountORM(
                    id=str(uuid4()),
                    user_id=user_id,
                    provider=data.provider.value,
                    created_at=now,
                )
                session.add(orm)

            orm.access_token = data.access_token
            orm.refresh_token = data.refresh_token
            orm.expires_at = to_naive_utc(data.expires_at)
            orm.updated_at = now
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def update_tokens(
        self,
        user_id: str,
        provider: CalendarProvider,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> CalendarAccount:
        async with self._session_factory() as session:
            orm = await self._find(session, user_id, provider)
            if not orm:
                raise NotFoundError(f"{provider.value} calendar not linked for {user_id}")

            orm.access_token = access_token
            if refresh_token:
                orm.refresh_token = refresh_token
            orm.expires_at = to_naive_utc(expires_at)
            orm.updated_at = to_naive_utc(now_utc())
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def delete(self, user_id: str, provider: CalendarProvider) -> bool:
        async with self._session_factory() as session:
            orm = await self._find(session, user_id, provider)
            if not orm:
                return False
            await session.delete(orm)
            await session.commit()
            return True
