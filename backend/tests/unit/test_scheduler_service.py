"""
Unit tests for SchedulerService.

Placement runs against real SQLite repositories and a fixed clock
(2031-03-10 08:00 UTC, a Monday) for a UTC user working 09:00-18:00.
"""

from datetime import datetime, timedelta, timezone
from itertools import combinations
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.core.exceptions import NotFoundError
from app.models.calendar import FreeBusyInterval, ProviderResult
from app.models.enums import CalendarProvider, Priority, TaskEventType, TaskStatus
from app.models.schedule import WorkWindow
from app.models.task import Task, TaskCreate, TaskUpdate
from app.models.user import UserCreate, WorkingHours
from app.services.scheduler_service import SchedulerService, build_gaps
from app.services.task_event_bus import TaskEventBus

UTC = timezone.utc
TODAY = datetime(2031, 3, 10, tzinfo=UTC)
TOMORROW = TODAY + timedelta(days=1)


def at(hour: int, minute: int = 0, day: datetime = TODAY) -> datetime:
    return day + timedelta(hours=hour, minutes=minute)


def make_scheduled(start: datetime, end: datetime) -> Task:
    now = datetime(2031, 3, 1, tzinfo=UTC)
    return Task(
        id=uuid4(),
        user_id="test_user",
        title="Scheduled",
        status=TaskStatus.SCHEDULED,
        scheduled_start=start,
        scheduled_end=end,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def scheduler(task_repo, user_repo, settings, clock):
    return SchedulerService(task_repo, user_repo, settings=settings, clock=clock)


async def create_task(task_repo, user_id, title, priority=Priority.MEDIUM, minutes=30):
    return await task_repo.create(
        user_id,
        TaskCreate(title=title, priority=priority, estimated_duration_minutes=minutes),
    )


class TestBuildGaps:
    def test_empty_day_is_one_gap(self):
        window = WorkWindow(start=at(9), end=at(18))
        assert build_gaps([], window, 15) == [FreeBusyInterval(start=at(9), end=at(18))]

    def test_buffer_surrounds_scheduled_tasks(self):
        window = WorkWindow(start=at(9), end=at(18))
        gaps = build_gaps([make_scheduled(at(12), at(13))], window, 15)

        assert gaps == [
            FreeBusyInterval(start=at(9), end=at(11, 45)),
            FreeBusyInterval(start=at(13, 15), end=at(18)),
        ]

    def test_task_within_one_buffer_of_cursor_leaves_no_gap(self):
        window = WorkWindow(start=at(9), end=at(18))
        gaps = build_gaps([make_scheduled(at(9, 10), at(10))], window, 15)
        assert gaps == [FreeBusyInterval(start=at(10, 15), end=at(18))]

    def test_unsorted_input(self):
        window = WorkWindow(start=at(9), end=at(12))
        gaps = build_gaps(
            [make_scheduled(at(11), at(11, 30)), make_scheduled(at(9, 30), at(10))],
            window,
            0,
        )
        assert gaps == [
            FreeBusyInterval(start=at(9), end=at(9, 30)),
            FreeBusyInterval(start=at(10), end=at(11)),
            FreeBusyInterval(start=at(11, 30), end=at(12)),
        ]

    def test_day_fully_booked(self):
        window = WorkWindow(start=at(9), end=at(10))
        assert build_gaps([make_scheduled(at(9), at(10))], window, 15) == []


@pytest.mark.asyncio
async def test_medium_task_goes_to_end_of_day(scheduler, task_repo, user):
    task = await create_task(task_repo, user.id, "Write report", minutes=60)

    assert await scheduler.schedule_task(user.id, task.id) is True

    placed = await task_repo.get(user.id, task.id)
    assert placed.status == TaskStatus.SCHEDULED
    assert placed.scheduled_start == at(17)
    assert placed.scheduled_end == at(18)


@pytest.mark.asyncio
async def test_high_task_goes_to_start_of_day(scheduler, task_repo, user):
    task = await create_task(task_repo, user.id, "Fix outage", Priority.HIGH, 60)

    assert await scheduler.schedule_task(user.id, task.id) is True

    placed = await task_repo.get(user.id, task.id)
    assert placed.scheduled_start == at(9)
    assert placed.scheduled_end == at(10)


@pytest.mark.asyncio
async def test_gap_start_alignment(task_repo, user_repo, user, settings, clock):
    settings.LOW_PRIORITY_ALIGNMENT = "gap_start"
    scheduler = SchedulerService(task_repo, user_repo, settings=settings, clock=clock)
    task = await create_task(task_repo, user.id, "Tidy inbox", Priority.LOW, 30)

    assert await scheduler.schedule_task(user.id, task.id) is True

    placed = await task_repo.get(user.id, task.id)
    assert placed.scheduled_start == at(9)
    assert placed.scheduled_end == at(9, 30)


@pytest.mark.asyncio
async def test_buffer_after_existing_task(scheduler, task_repo, user):
    first = await create_task(task_repo, user.id, "First", Priority.HIGH, 60)
    second = await create_task(task_repo, user.id, "Second", Priority.HIGH, 30)

    await scheduler.schedule_task(user.id, first.id)
    await scheduler.schedule_task(user.id, second.id)

    placed = await task_repo.get(user.id, second.id)
    assert placed.scheduled_start == at(10, 15)
    assert placed.scheduled_end == at(10, 45)


@pytest.mark.asyncio
async def test_window_starts_now_during_the_day(task_repo, user_repo, user, settings):
    now = at(12, 7)
    scheduler = SchedulerService(task_repo, user_repo, settings=settings, clock=lambda: now)
    task = await create_task(task_repo, user.id, "Call back", Priority.URGENT, 30)

    assert await scheduler.schedule_task(user.id, task.id) is True

    placed = await task_repo.get(user.id, task.id)
    assert placed.scheduled_start == now


@pytest.mark.asyncio
async def test_after_hours_rolls_to_tomorrow(task_repo, user_repo, user, settings):
    scheduler = SchedulerService(task_repo, user_repo, settings=settings, clock=lambda: at(19))
    task = await create_task(task_repo, user.id, "Late idea", Priority.HIGH, 30)

    assert await scheduler.schedule_task(user.id, task.id) is True

    placed = await task_repo.get(user.id, task.id)
    assert placed.scheduled_start == at(9, day=TOMORROW)


@pytest.mark.asyncio
async def test_full_days_leave_task_pending(task_repo, user_repo, user, settings, clock):
    await user_repo.update_working_hours(user.id, WorkingHours(workday_start_min=540, workday_end_min=600))
    scheduler = SchedulerService(task_repo, user_repo, settings=settings, clock=clock)

    first = await create_task(task_repo, user.id, "First", minutes=60)
    second = await create_task(task_repo, user.id, "Second", minutes=30)
    third = await create_task(task_repo, user.id, "Third", minutes=60)

    assert await scheduler.schedule_task(user.id, first.id) is True
    assert await scheduler.schedule_task(user.id, second.id) is True
    assert await scheduler.schedule_task(user.id, third.id) is False

    second_placed = await task_repo.get(user.id, second.id)
    assert second_placed.scheduled_start == at(9, 30, day=TOMORROW)

    left = await task_repo.get(user.id, third.id)
    assert left.status == TaskStatus.PENDING
    assert left.scheduled_start is None


@pytest.mark.asyncio
async def test_task_longer_than_workday_is_not_placed(task_repo, user_repo, user, settings, clock):
    await user_repo.update_working_hours(user.id, WorkingHours(workday_start_min=540, workday_end_min=600))
    scheduler = SchedulerService(task_repo, user_repo, settings=settings, clock=clock)
    task = await create_task(task_repo, user.id, "Deep work", minutes=120)

    assert await scheduler.schedule_task(user.id, task.id) is False


@pytest.mark.asyncio
async def test_external_busy_time_is_avoided(task_repo, user_repo, user, settings, clock):
    free_busy = AsyncMock()
    free_busy.get_user_free_busy.return_value = [FreeBusyInterval(start=at(9), end=at(12))]
    scheduler = SchedulerService(task_repo, user_repo, free_busy=free_busy, settings=settings, clock=clock)
    task = await create_task(task_repo, user.id, "Review", Priority.HIGH, 60)

    assert await scheduler.schedule_task(user.id, task.id) is True

    placed = await task_repo.get(user.id, task.id)
    assert placed.scheduled_start == at(12)
    free_busy.get_user_free_busy.assert_awaited_with(user.id, at(9), at(18))


@pytest.mark.asyncio
async def test_non_schedulable_status_returns_false(scheduler, task_repo, user):
    task = await create_task(task_repo, user.id, "Done already")
    await task_repo.update(user.id, task.id, TaskUpdate(status=TaskStatus.COMPLETED))

    assert await scheduler.schedule_task(user.id, task.id) is False


@pytest.mark.asyncio
async def test_postponed_task_can_be_scheduled(scheduler, task_repo, user):
    task = await create_task(task_repo, user.id, "Parked")
    await task_repo.update(user.id, task.id, TaskUpdate(status=TaskStatus.POSTPONED))

    assert await scheduler.schedule_task(user.id, task.id) is True


@pytest.mark.asyncio
async def test_unknown_task_raises(scheduler, user):
    with pytest.raises(NotFoundError):
        await scheduler.schedule_task(user.id, uuid4())


@pytest.mark.asyncio
async def test_other_users_task_is_not_found(scheduler, task_repo, user_repo, user):
    await user_repo.create("intruder", UserCreate(email="intruder@example.com"))
    task = await create_task(task_repo, user.id, "Mine")

    with pytest.raises(NotFoundError):
        await scheduler.schedule_task("intruder", task.id)


@pytest.mark.asyncio
async def test_scheduled_event_is_recorded(scheduler, task_repo, user):
    task = await create_task(task_repo, user.id, "Audit me", Priority.HIGH)

    await scheduler.schedule_task(user.id, task.id)

    events = await task_repo.list_events(user.id, task.id)
    assert [e.type for e in events] == [TaskEventType.CREATED, TaskEventType.SCHEDULED]
    assert events[-1].reason == "Auto-scheduled for Mar 10, 2031 09:00"


@pytest.mark.asyncio
async def test_external_event_is_linked(task_repo, user_repo, user, settings, clock):
    calendar_sync = AsyncMock()
    calendar_sync.create_event_for_task.return_value = ProviderResult.success(
        (CalendarProvider.GOOGLE, "evt-1")
    )
    scheduler = SchedulerService(
        task_repo, user_repo, calendar_sync=calendar_sync, settings=settings, clock=clock
    )
    task = await create_task(task_repo, user.id, "Synced")

    assert await scheduler.schedule_task(user.id, task.id) is True

    placed = await task_repo.get(user.id, task.id)
    assert placed.external_event_id == "evt-1"
    assert placed.external_event_provider == CalendarProvider.GOOGLE


@pytest.mark.asyncio
async def test_calendar_failure_does_not_block_scheduling(task_repo, user_repo, user, settings, clock):
    calendar_sync = AsyncMock()
    calendar_sync.create_event_for_task.return_value = ProviderResult.failure(
        "google", "timeout", "too slow"
    )
    scheduler = SchedulerService(
        task_repo, user_repo, calendar_sync=calendar_sync, settings=settings, clock=clock
    )
    task = await create_task(task_repo, user.id, "Unsynced")

    assert await scheduler.schedule_task(user.id, task.id) is True

    placed = await task_repo.get(user.id, task.id)
    assert placed.status == TaskStatus.SCHEDULED
    assert placed.external_event_id is None


@pytest.mark.asyncio
async def test_calendar_exception_does_not_block_batch(task_repo, user_repo, user, settings, clock):
    calendar_sync = AsyncMock()
    calendar_sync.create_event_for_task.side_effect = ConnectionError("Unable to find the server")
    scheduler = SchedulerService(
        task_repo, user_repo, calendar_sync=calendar_sync, settings=settings, clock=clock
    )
    first = await create_task(task_repo, user.id, "First")
    second = await create_task(task_repo, user.id, "Second")

    assert await scheduler.schedule_task(user.id, first.id) is True
    result = await scheduler.schedule_all_pending_tasks(user.id)

    assert (result.scheduled, result.failed) == (1, 0)
    for task_id in (first.id, second.id):
        placed = await task_repo.get(user.id, task_id)
        assert placed.status == TaskStatus.SCHEDULED
        assert placed.external_event_id is None


@pytest.mark.asyncio
async def test_scheduling_publishes_change(task_repo, user_repo, user, settings, clock):
    bus = TaskEventBus()
    seen = []

    async def collect(change):
        seen.append(change)

    await bus.subscribe(collect)
    scheduler = SchedulerService(task_repo, user_repo, event_bus=bus, settings=settings, clock=clock)
    task = await create_task(task_repo, user.id, "Observed")

    await scheduler.schedule_task(user.id, task.id)

    assert len(seen) == 1
    assert seen[0].type == TaskEventType.SCHEDULED
    assert seen[0].task.status == TaskStatus.SCHEDULED


@pytest.mark.asyncio
async def test_batch_orders_by_priority(scheduler, task_repo, user):
    low = await create_task(task_repo, user.id, "Low", Priority.LOW, 60)
    urgent = await create_task(task_repo, user.id, "Urgent", Priority.URGENT, 30)
    medium = await create_task(task_repo, user.id, "Medium", Priority.MEDIUM, 30)

    result = await scheduler.schedule_all_pending_tasks(user.id)

    assert result.scheduled == 3
    assert result.failed == 0

    placed = {t.id: t for t in await scheduler.get_day_schedule(user.id)}
    assert placed[urgent.id].scheduled_start == at(9)
    assert placed[medium.id].scheduled_start == at(17, 30)
    assert placed[low.id].scheduled_start == at(16, 15)
    assert placed[low.id].scheduled_end == at(17, 15)


@pytest.mark.asyncio
async def test_batch_never_double_books(scheduler, task_repo, user, settings):
    priorities = [Priority.HIGH, Priority.LOW, Priority.MEDIUM, Priority.URGENT] * 3
    for index, priority in enumerate(priorities):
        await create_task(task_repo, user.id, f"Task {index}", priority, 45)

    result = await scheduler.schedule_all_pending_tasks(user.id)
    assert result.scheduled + result.failed == len(priorities)

    scheduled = await task_repo.list_by_status(user.id, [TaskStatus.SCHEDULED])
    assert len(scheduled) == result.scheduled
    buffer = timedelta(minutes=settings.SCHEDULING_BUFFER_MINUTES)
    for a, b in combinations(scheduled, 2):
        assert a.scheduled_end + buffer <= b.scheduled_start or b.scheduled_end + buffer <= a.scheduled_start
    for task in scheduled:
        day = task.scheduled_start.replace(hour=0, minute=0)
        assert day + timedelta(hours=9) <= task.scheduled_start
        assert task.scheduled_end <= day + timedelta(hours=18)
        assert task.scheduled_minutes == 45


@pytest.mark.asyncio
async def test_batch_is_deterministic(task_repo, user_repo, settings, clock):
    placements = []
    for user_id in ("alice", "bob"):
        await user_repo.create(user_id, UserCreate(email=f"{user_id}@example.com"))
        scheduler = SchedulerService(task_repo, user_repo, settings=settings, clock=clock)
        for index, priority in enumerate([Priority.MEDIUM, Priority.HIGH, Priority.LOW]):
            await create_task(task_repo, user_id, f"Task {index}", priority, 40)
        await scheduler.schedule_all_pending_tasks(user_id)
        tasks = sorted(
            await task_repo.list_by_status(user_id, [TaskStatus.SCHEDULED]),
            key=lambda t: t.title,
        )
        placements.append([(t.title, t.scheduled_start, t.scheduled_end) for t in tasks])

    assert placements[0] == placements[1]


@pytest.mark.asyncio
async def test_day_schedule_is_sorted(scheduler, task_repo, user):
    for priority in (Priority.LOW, Priority.HIGH):
        await create_task(task_repo, user.id, priority.value, priority)
    await scheduler.schedule_all_pending_tasks(user.id)

    day = await scheduler.get_day_schedule(user.id)
    assert [t.title for t in day] == ["HIGH", "LOW"]
    assert await scheduler.get_day_schedule(user.id, (TOMORROW + timedelta(days=3)).date()) == []
