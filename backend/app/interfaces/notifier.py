"""
Notifier interface.

Delivers task reminders to the user (browser push, desktop, log).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class INotifier(ABC):
    """Abstract interface for reminder delivery."""

    @abstractmethod
    async def request_permission(self, user_id: str) -> bool:
        """Ask the user to allow notifications. Returns True if granted."""
        pass

    @abstractmethod
    async def show(self, user_id: str, title: str, body: str, tag: str) -> None:
        """Show a notification now."""
        pass

    @abstractmethod
    async def schedule_at(
        self, user_id: str, at: datetime, title: str, body: str, tag: str
    ) -> None:
        """Show a notification at a future time, replacing any with the same tag."""
        pass

    @abstractmethod
    async def cancel(self, user_id: str, tag: str) -> None:
        """Cancel a pending notification."""
        pass
