"""
User repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from app.models.user import UserAccount, UserCreate, WorkingHours


class IUserRepository(ABC):
    """Abstract interface for user persistence."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserAccount]:
        """Get a user by ID."""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[UserAccount]:
        """Get a user by email."""
        pass

    @abstractmethod
    async def create(self, user_id: str, data: UserCreate) -> UserAccount:
        """Create a new user with the given ID."""
        pass

    @abstractmethod
    async def update_working_hours(self, user_id: str, hours: WorkingHours) -> UserAccount:
        """Replace a user's working hours."""
        pass

    @abstractmethod
    async def list_all(self) -> list[UserAccount]:
        """All users, used by background jobs."""
        pass
