"""
In-process publish/subscribe for task changes.

Services publish after a mutation commits; subscribers (reminders, live
views) react. A failing subscriber is logged and does not affect the others
or the publisher.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from uuid import UUID

from app.core.logger import setup_logger
from app.models.enums import TaskEventType
from app.models.task import Task

logger = setup_logger(__name__)


@dataclass(frozen=True)
class TaskChange:
    """A committed task mutation."""

    user_id: str
    task_id: UUID
    type: Optional[TaskEventType]
    task: Optional[Task] = None
    reason: Optional[str] = None
    deleted: bool = False


Subscriber = Callable[[TaskChange], Awaitable[None]]


class TaskEventBus:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = asyncio.Lock()

    async def subscribe(self, handler: Subscriber) -> Callable[[], Awaitable[None]]:
        """Register a handler; returns a coroutine function that unregisters it."""
        async with self._lock:
            self._subscribers.append(handler)

        async def unsubscribe() -> None:
            async with self._lock:
                if handler in self._subscribers:
                    self._subscribers.remove(handler)

        return unsubscribe

    async def publish(self, change: TaskChange) -> None:
        async with self._lock:
            handlers = list(self._subscribers)
        for handler in handlers:
            try:
                await handler(change)
            except Exception as e:
                logger.error(
                    f"Task event subscriber {getattr(handler, '__qualname__', handler)} failed "
                    f"for task {change.task_id}: {e}"
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


task_event_bus = TaskEventBus()
