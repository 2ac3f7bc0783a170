"""
Calendar account repository interface.

Stores OAuth tokens of the external calendars a user has linked.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from app.models.calendar import CalendarAccount, CalendarAccountUpsert
from app.models.enums import CalendarProvider


class ICalendarAccountRepository(ABC):
    """Abstract interface for linked calendar accounts."""

    @abstractmethod
    async def list_by_user(self, user_id: str) -> list[CalendarAccount]:
        pass

    @abstractmethod
    async def get(self, user_id: str, provider: CalendarProvider) -> Optional[CalendarAccount]:
        pass

    @abstractmethod
    async def upsert(self, user_id: str, data: CalendarAccountUpsert) -> CalendarAccount:
        """Link a provider, replacing any stored tokens."""
        pass

    @abstractmethod
    async def update_tokens(
        self,
        user_id: str,
        provider: CalendarProvider,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> CalendarAccount:
        """
        Store refreshed tokens.

        A ``None`` refresh token keeps the stored one.

        Raises:
            NotFoundError: If the provider is not linked
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, provider: CalendarProvider) -> bool:
        pass
