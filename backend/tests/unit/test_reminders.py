"""
Unit tests for the task event bus, reminder service and log notifier.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.infrastructure.local.log_notifier import LogNotifier
from app.models.enums import TaskEventType, TaskStatus
from app.models.task import Task
from app.services.reminder_service import ReminderService, reminder_tag
from app.services.task_event_bus import TaskChange, TaskEventBus

UTC = timezone.utc
NOW = datetime(2031, 3, 10, 8, 0, tzinfo=UTC)


def make_task(start=None, status=TaskStatus.SCHEDULED, minutes=30) -> Task:
    return Task(
        id=uuid4(),
        user_id="u1",
        title="Standup notes",
        status=status,
        estimated_duration_minutes=minutes,
        scheduled_start=start,
        scheduled_end=start + timedelta(minutes=minutes) if start else None,
        created_at=NOW,
        updated_at=NOW,
    )


def change_for(task: Task, event_type=TaskEventType.SCHEDULED, deleted=False) -> TaskChange:
    return TaskChange(user_id="u1", task_id=task.id, type=event_type, task=task, deleted=deleted)


class TestTaskEventBus:
    @pytest.mark.asyncio
    async def test_publish_reaches_subscribers_in_order(self):
        bus = TaskEventBus()
        seen = []

        async def first(change):
            seen.append(("first", change.task_id))

        async def second(change):
            seen.append(("second", change.task_id))

        await bus.subscribe(first)
        await bus.subscribe(second)
        task = make_task(NOW)

        await bus.publish(change_for(task))

        assert seen == [("first", task.id), ("second", task.id)]

    @pytest.mark.asyncio
    async def test_failing_subscriber_is_isolated(self):
        bus = TaskEventBus()
        seen = []

        async def broken(change):
            raise RuntimeError("boom")

        async def healthy(change):
            seen.append(change)

        await bus.subscribe(broken)
        await bus.subscribe(healthy)

        await bus.publish(change_for(make_task(NOW)))

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = TaskEventBus()
        handler = AsyncMock()
        unsubscribe = await bus.subscribe(handler)
        assert bus.subscriber_count == 1

        await unsubscribe()
        await bus.publish(change_for(make_task(NOW)))

        assert bus.subscriber_count == 0
        handler.assert_not_awaited()


class TestReminderService:
    @pytest.fixture
    def notifier(self):
        return AsyncMock()

    @pytest.fixture
    def reminders(self, notifier, settings):
        return ReminderService(notifier, settings=settings, clock=lambda: NOW)

    @pytest.mark.asyncio
    async def test_future_task_is_scheduled_before_start(self, reminders, notifier):
        task = make_task(NOW + timedelta(hours=2))

        await reminders.handle(change_for(task))

        notifier.schedule_at.assert_awaited_once()
        user_id, at, title, body, tag = notifier.schedule_at.await_args.args
        assert user_id == "u1"
        assert at == task.scheduled_start - timedelta(minutes=10)
        assert title == "Standup notes"
        assert "30 min" in body
        assert tag == reminder_tag(task.id)

    @pytest.mark.asyncio
    async def test_task_inside_lead_time_is_shown_now(self, reminders, notifier):
        task = make_task(NOW + timedelta(minutes=5))

        await reminders.handle(change_for(task))

        notifier.show.assert_awaited_once()
        notifier.schedule_at.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_started_task_cancels_reminder(self, reminders, notifier):
        task = make_task(NOW - timedelta(minutes=5))

        await reminders.handle(change_for(task))

        notifier.cancel.assert_awaited_once_with("u1", reminder_tag(task.id))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [TaskStatus.COMPLETED, TaskStatus.POSTPONED, TaskStatus.PENDING])
    async def test_unscheduled_task_cancels_reminder(self, reminders, notifier, status):
        task = make_task(status=status)

        await reminders.handle(change_for(task, TaskEventType.POSTPONED))

        notifier.cancel.assert_awaited_once_with("u1", reminder_tag(task.id))

    @pytest.mark.asyncio
    async def test_deleted_task_cancels_reminder(self, reminders, notifier):
        task_id = uuid4()

        await reminders.handle(TaskChange(user_id="u1", task_id=task_id, type=None, deleted=True))

        notifier.cancel.assert_awaited_once_with("u1", reminder_tag(task_id))

    @pytest.mark.asyncio
    async def test_attach_and_detach(self, reminders, notifier):
        bus = TaskEventBus()
        await reminders.attach(bus)
        await reminders.attach(bus)
        assert bus.subscriber_count == 1

        await bus.publish(change_for(make_task(NOW + timedelta(hours=1))))
        notifier.schedule_at.assert_awaited_once()

        await reminders.detach()
        assert bus.subscriber_count == 0


class TestLogNotifier:
    @pytest.mark.asyncio
    async def test_schedule_replace_and_cancel(self):
        notifier = LogNotifier()
        later = datetime.now(UTC) + timedelta(hours=1)

        await notifier.schedule_at("u1", later, "Title", "Body", "task-1")
        await notifier.schedule_at("u1", later, "Title", "Body", "task-1")
        await notifier.schedule_at("u1", later, "Other", "Body", "task-2")

        assert notifier.pending_tags("u1") == ["task-1", "task-2"]
        assert notifier.pending_tags("u2") == []

        await notifier.cancel("u1", "task-1")
        assert notifier.pending_tags("u1") == ["task-2"]

        await notifier.show("u1", "Other", "Body", "task-2")
        assert notifier.pending_tags("u1") == []

    @pytest.mark.asyncio
    async def test_request_permission(self):
        assert await LogNotifier().request_permission("u1") is True

    @pytest.mark.asyncio
    async def test_failed_delivery_is_logged(self, caplog):
        class BrokenNotifier(LogNotifier):
            async def show(self, user_id, title, body, tag):
                raise RuntimeError("display unavailable")

        notifier = BrokenNotifier()
        await notifier.schedule_at("u1", datetime.now(UTC) - timedelta(minutes=1), "Title", "Body", "task-1")

        await asyncio.sleep(0.05)

        assert notifier._delivering == set()
        assert any(
            "Reminder delivery failed: display unavailable" in record.getMessage()
            for record in caplog.records
        )
