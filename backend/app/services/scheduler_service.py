"""
Scheduler service for automatic task placement.

Turns an unscheduled task into a concrete [start, end) interval inside the
user's working hours, around already-scheduled tasks and external busy time.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from app.core.config import Settings, get_settings
from app.core.exceptions import InvalidStateError, NotFoundError
from app.core.logger import setup_logger
from app.interfaces.task_repository import ITaskRepository
from app.interfaces.user_repository import IUserRepository
from app.models.calendar import FreeBusyInterval
from app.models.enums import TaskEventType, TaskStatus
from app.models.schedule import BatchScheduleResult, WorkWindow
from app.models.task import Task, TaskUpdate
from app.models.task_event import TaskEventCreate
from app.models.user import UserAccount
from app.services.calendar_sync_service import CalendarSyncService
from app.services.free_busy_service import FreeBusyService
from app.services.slot_finder import find_available_slots
from app.services.task_event_bus import TaskChange, TaskEventBus
from app.services.working_hours import resolve_work_window
from app.utils.datetime_utils import format_local, get_user_today, local_day_bounds, now_utc

logger = setup_logger(__name__)

# Statuses the engine may place
SCHEDULABLE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.POSTPONED})

# Today, then tomorrow
LOOKAHEAD_DAYS = 2


def build_gaps(
    scheduled: list[Task],
    window: WorkWindow,
    buffer_minutes: int,
) -> list[FreeBusyInterval]:
    """
    Gaps of a work window around already-scheduled tasks.

    Each scheduled task is padded by ``buffer_minutes`` on both sides. A gap
    before a task is emitted only when the task starts more than one buffer
    after the cursor.
    """
    buffer = timedelta(minutes=buffer_minutes)
    gaps: list[FreeBusyInterval] = []
    cursor = window.start

    for task in sorted(scheduled, key=lambda t: t.scheduled_start):
        if task.scheduled_start > cursor + buffer:
            gap_end = min(task.scheduled_start - buffer, window.end)
            if gap_end > cursor:
                gaps.append(FreeBusyInterval(start=cursor, end=gap_end))
        cursor = max(cursor, task.scheduled_end + buffer)

    if cursor < window.end:
        gaps.append(FreeBusyInterval(start=cursor, end=window.end))
    return gaps


class SchedulerService:
    """
    Greedy, priority-aware auto-scheduling.

    Provides:
    - Single-task placement (today, then tomorrow)
    - Batch placement of all pending tasks in priority order
    - Day schedule lookup
    """

    def __init__(
        self,
        task_repo: ITaskRepository,
        user_repo: IUserRepository,
        free_busy: Optional[FreeBusyService] = None,
        calendar_sync: Optional[CalendarSyncService] = None,
        event_bus: Optional[TaskEventBus] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        """
        Initialize scheduler service.

        Args:
            task_repo: Task storage
            user_repo: User storage (working hours, timezone)
            free_busy: External busy-time source (None = no external calendars)
            calendar_sync: Mirrors placements to an external calendar
            event_bus: Receives SCHEDULED changes after commit
            settings: Scheduling configuration
            clock: Current-time source
        """
        self._task_repo = task_repo
        self._user_repo = user_repo
        self._free_busy = free_busy
        self._calendar_sync = calendar_sync
        self._event_bus = event_bus
        self._settings = settings or get_settings()
        self._clock = clock

    async def _get_user(self, user_id: str) -> UserAccount:
        user = await self._user_repo.get(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def _candidate_slots(
        self, user: UserAccount, task: Task, day: date, now: datetime
    ) -> list[FreeBusyInterval]:
        """Viable slots of one day for the task, in chronological order."""
        window = resolve_work_window(
            user.working_hours,
            day,
            user.timezone,
            now=now,
            earliest_start=task.created_at,
            end_reserve_minutes=self._settings.END_OF_DAY_RESERVE_MINUTES,
        )
        duration = task.estimated_duration_minutes
        if window.is_empty or window.minutes < duration:
            return []

        day_start, day_end = local_day_bounds(day, user.timezone)
        scheduled = [
            t
            for t in await self._task_repo.list_scheduled_in_range(user.id, day_start, day_end)
            if t.id != task.id and t.has_interval
        ]
        gaps = build_gaps(scheduled, window, self._settings.SCHEDULING_BUFFER_MINUTES)

        busy: list[FreeBusyInterval] = []
        if self._free_busy is not None:
            busy = await self._free_busy.get_user_free_busy(user.id, window.start, window.end)

        slots: list[FreeBusyInterval] = []
        for gap in gaps:
            slots.extend(find_available_slots(busy, gap.start, gap.end, duration))
        return slots

    def _place(self, task: Task, slots: list[FreeBusyInterval]) -> tuple[datetime, datetime]:
        """Pick the interval for a task from its viable slots."""
        duration = timedelta(minutes=task.estimated_duration_minutes)
        if task.priority.front_loads:
            slot = slots[0]
            return slot.start, slot.start + duration

        slot = slots[-1]
        if self._settings.LOW_PRIORITY_ALIGNMENT == "gap_end":
            return slot.end - duration, slot.end
        return slot.start, slot.start + duration

    async def schedule_task(self, user_id: str, task_id: UUID) -> bool:
        """
        Place one task into today's or tomorrow's working hours.

        Returns:
            True if an interval was found and committed; False if the task is
            not schedulable or no slot exists

        Raises:
            NotFoundError: If the task or user does not exist
        """
        task = await self._task_repo.get(user_id, task_id)
        if not task:
            raise NotFoundError(f"Task {task_id} not found")
        if task.status not in SCHEDULABLE_STATUSES:
            logger.debug(f"Task {task_id} is {task.status.value}, not scheduling")
            return False

        user = await self._get_user(user_id)
        now = self._clock()
        today = get_user_today(user.timezone, now)

        for offset in range(LOOKAHEAD_DAYS):
            day = today + timedelta(days=offset)
            slots = await self._candidate_slots(user, task, day, now)
            if not slots:
                continue

            start, end = self._place(task, slots)
            try:
                scheduled = await self._task_repo.update(
                    user_id,
                    task_id,
                    TaskUpdate(status=TaskStatus.SCHEDULED, scheduled_start=start, scheduled_end=end),
                    event=TaskEventCreate(
                        type=TaskEventType.SCHEDULED,
                        reason=f"Auto-scheduled for {format_local(start, user.timezone)}",
                    ),
                    expected_statuses=SCHEDULABLE_STATUSES,
                )
            except InvalidStateError:
                logger.info(f"Task {task_id} changed state while scheduling, skipping")
                return False

            logger.info(f"Scheduled task {task_id} at {start.isoformat()} - {end.isoformat()}")
            scheduled = await self._sync_external_event(user_id, scheduled)
            await self._publish(TaskChange(
                user_id=user_id,
                task_id=task_id,
                type=TaskEventType.SCHEDULED,
                task=scheduled,
            ))
            return True

        logger.info(f"No slot found for task {task_id} today or tomorrow")
        return False

    async def _sync_external_event(self, user_id: str, task: Task) -> Task:
        """Best-effort external calendar event for a freshly scheduled task."""
        if self._calendar_sync is None:
            return task

        try:
            result = await self._calendar_sync.create_event_for_task(user_id, task)
        except Exception as e:
            logger.error(f"Calendar event creation failed for task {task.id}: {e}")
            return task

        if not result.ok:
            log = logger.debug if result.error.kind == "not_linked" else logger.warning
            log(
                f"Calendar event not created for task {task.id}: "
                f"{result.error.provider} {result.error.kind} - {result.error.message}"
            )
            return task

        provider, event_id = result.value
        return await self._task_repo.update(
            user_id,
            task.id,
            TaskUpdate(external_event_id=event_id, external_event_provider=provider),
        )

    async def _publish(self, change: TaskChange) -> None:
        if self._event_bus is not None:
            await self._event_bus.publish(change)

    async def schedule_all_pending_tasks(self, user_id: str) -> BatchScheduleResult:
        """
        Schedule every PENDING task, highest priority first then oldest first.

        Tasks are placed one at a time so each sees the previous placements.
        """
        pending = await self._task_repo.list_by_status(user_id, [TaskStatus.PENDING])
        ordered = sorted(pending, key=lambda t: (-t.priority.rank, t.created_at))

        result = BatchScheduleResult()
        for task in ordered:
            if await self.schedule_task(user_id, task.id):
                result.scheduled += 1
            else:
                result.failed += 1

        logger.info(
            f"Batch scheduling for {user_id}: {result.scheduled} scheduled, {result.failed} failed"
        )
        return result

    async def get_day_schedule(self, user_id: str, day: Optional[date] = None) -> list[Task]:
        """SCHEDULED tasks of a user-local date, ascending by start."""
        user = await self._get_user(user_id)
        day = day or get_user_today(user.timezone, self._clock())
        start, end = local_day_bounds(day, user.timezone)
        return await self._task_repo.list_scheduled_in_range(user_id, start, end)
