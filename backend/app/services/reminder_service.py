"""
Task reminders.

Subscribes to the task event bus and keeps one pending notification per
scheduled task, REMINDER_LEAD_MINUTES before its start.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from app.core.config import Settings, get_settings
from app.core.logger import setup_logger
from app.interfaces.notifier import INotifier
from app.models.enums import TaskStatus
from app.services.task_event_bus import TaskChange, TaskEventBus
from app.utils.datetime_utils import now_utc

logger = setup_logger(__name__)


def reminder_tag(task_id) -> str:
    return f"task-{task_id}"


class ReminderService:
    def __init__(
        self,
        notifier: INotifier,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._notifier = notifier
        self._settings = settings or get_settings()
        self._clock = clock
        self._unsubscribe = None

    async def attach(self, bus: TaskEventBus) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = await bus.subscribe(self.handle)

    async def detach(self) -> None:
        if self._unsubscribe is not None:
            await self._unsubscribe()
            self._unsubscribe = None

    async def handle(self, change: TaskChange) -> None:
        tag = reminder_tag(change.task_id)
        task = change.task

        if change.deleted or task is None or task.status != TaskStatus.SCHEDULED or not task.has_interval:
            await self._notifier.cancel(change.user_id, tag)
            return

        now = self._clock()
        if task.scheduled_start <= now:
            await self._notifier.cancel(change.user_id, tag)
            return

        body = f"Starts at {task.scheduled_start.strftime('%H:%M')} UTC ({task.estimated_duration_minutes} min)"
        remind_at = task.scheduled_start - timedelta(minutes=self._settings.REMINDER_LEAD_MINUTES)
        if remind_at <= now:
            await self._notifier.show(change.user_id, task.title, body, tag)
        else:
            await self._notifier.schedule_at(change.user_id, remind_at, task.title, body, tag)
