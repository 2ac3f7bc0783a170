"""
Calendar provider interface.

Every call returns a ProviderResult; providers never raise across this
boundary for remote failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.models.calendar import FreeBusyInterval, ProviderResult
from app.models.task import Task


class ICalendarProvider(ABC):
    """Abstract interface for an external calendar (Google, Microsoft)."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier stored on linked tasks."""
        pass

    @abstractmethod
    async def get_free_busy(
        self, user_id: str, start: datetime, end: datetime
    ) -> ProviderResult[list[FreeBusyInterval]]:
        """Busy intervals of the user's calendar within [start, end)."""
        pass

    @abstractmethod
    async def create_event(self, user_id: str, task: Task) -> ProviderResult[str]:
        """Create an event covering the task's interval; returns the event ID."""
        pass

    @abstractmethod
    async def delete_event(self, user_id: str, event_id: str) -> ProviderResult[bool]:
        """Delete an event previously created for a task."""
        pass
