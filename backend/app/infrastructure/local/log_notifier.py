"""
Notifier that writes reminders to the application log.

Keeps scheduled reminders as asyncio timer handles so they can be replaced
or cancelled by tag.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from app.core.logger import setup_logger
from app.interfaces.notifier import INotifier
from app.utils.datetime_utils import ensure_utc, now_utc

logger = setup_logger(__name__)


class LogNotifier(INotifier):
    """Local notifier: reminders are log lines."""

    def __init__(self):
        self._pending: dict[tuple[str, str], asyncio.TimerHandle] = {}
        self._delivering: set[asyncio.Task] = set()

    async def request_permission(self, user_id: str) -> bool:
        return True

    async def show(self, user_id: str, title: str, body: str, tag: str) -> None:
        handle = self._pending.pop((user_id, tag), None)
        if handle is not None:
            handle.cancel()
        logger.info(f"[notify:{user_id}] {title} - {body} ({tag})")

    async def schedule_at(
        self, user_id: str, at: datetime, title: str, body: str, tag: str
    ) -> None:
        await self.cancel(user_id, tag)
        delay = max(0.0, (ensure_utc(at) - now_utc()).total_seconds())
        loop = asyncio.get_running_loop()
        self._pending[(user_id, tag)] = loop.call_later(
            delay, self._deliver, user_id, title, body, tag
        )
        logger.debug(f"Reminder {tag} for {user_id} in {delay:.0f}s")

    def _deliver(self, user_id: str, title: str, body: str, tag: str) -> None:
        task = asyncio.ensure_future(self.show(user_id, title, body, tag))
        self._delivering.add(task)
        task.add_done_callback(self._delivered)

    def _delivered(self, task: asyncio.Task) -> None:
        self._delivering.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Reminder delivery failed: {task.exception()}")

    async def cancel(self, user_id: str, tag: str) -> None:
        handle = self._pending.pop((user_id, tag), None)
        if handle is not None:
            handle.cancel()

    def pending_tags(self, user_id: str) -> list[str]:
        return sorted(tag for uid, tag in self._pending if uid == user_id)
