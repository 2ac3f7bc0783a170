"""
Task state transitions and re-planning.

Every operation checks ownership and its precondition before writing; a
failed precondition raises NotFoundError/InvalidStateError with no mutation.
External calendar cleanup is best-effort and never blocks the transition.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional
from uuid import UUID

import pydantic

from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.core.logger import setup_logger
from app.interfaces.task_repository import ITaskRepository
from app.interfaces.user_repository import IUserRepository
from app.models.enums import TaskEventType, TaskStatus
from app.models.schedule import RescheduleOutcome, ScheduleTaskResponse, WorkingHoursResult
from app.models.task import Task, TaskCreate, TaskPatch, TaskUpdate
from app.models.task_event import TaskEventCreate
from app.models.user import WorkingHours
from app.services.calendar_sync_service import CalendarSyncService
from app.services.scheduler_service import SchedulerService
from app.services.task_event_bus import TaskChange, TaskEventBus
from app.utils.datetime_utils import ensure_utc, format_local, now_utc

logger = setup_logger(__name__)

SWAP_REASON = "Swapped schedule with another task"


class ReplanningService:
    """Manual and notification-driven task operations."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        user_repo: IUserRepository,
        scheduler: SchedulerService,
        calendar_sync: Optional[CalendarSyncService] = None,
        event_bus: Optional[TaskEventBus] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._task_repo = task_repo
        self._user_repo = user_repo
        self._scheduler = scheduler
        self._calendar_sync = calendar_sync
        self._event_bus = event_bus
        self._clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_task(self, user_id: str, task_id: UUID) -> Task:
        task = await self._task_repo.get(user_id, task_id)
        if not task:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    @staticmethod
    def _require_status(task: Task, allowed: Iterable[TaskStatus], action: str) -> None:
        allowed = set(allowed)
        if task.status not in allowed:
            raise InvalidStateError(
                f"Cannot {action} a {task.status.value} task",
                details={"task_id": str(task.id), "status": task.status.value},
            )

    @staticmethod
    def _require_open(task: Task, action: str) -> None:
        if task.status.is_terminal:
            raise InvalidStateError(
                f"Cannot {action} a {task.status.value} task",
                details={"task_id": str(task.id), "status": task.status.value},
            )

    @staticmethod
    def _require_interval(task: Task, action: str) -> None:
        if task.status != TaskStatus.SCHEDULED or not task.has_interval:
            raise InvalidStateError(
                f"Cannot {action} a task without a scheduled interval",
                details={"task_id": str(task.id), "status": task.status.value},
            )

    async def _remove_external_event(self, user_id: str, task: Task) -> None:
        if self._calendar_sync is None or not task.external_event_id:
            return
        try:
            result = await self._calendar_sync.delete_event_for_task(user_id, task)
        except Exception as e:
            logger.error(
                f"Calendar event deletion failed for {task.external_event_id} of task {task.id}: {e}"
            )
            return

        if not result.ok:
            logger.warning(
                f"Could not delete calendar event {task.external_event_id} of task {task.id}: "
                f"{result.error.kind} - {result.error.message}"
            )

    async def _publish(
        self,
        user_id: str,
        task: Optional[Task],
        event_type: Optional[TaskEventType],
        reason: Optional[str] = None,
        task_id: Optional[UUID] = None,
        deleted: bool = False,
    ) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(
            TaskChange(
                user_id=user_id,
                task_id=task.id if task else task_id,
                type=event_type,
                task=task,
                reason=reason,
                deleted=deleted,
            )
        )

    async def _transition(
        self,
        user_id: str,
        task: Task,
        update: TaskUpdate,
        event_type: TaskEventType,
        reason: str,
        expected: Iterable[TaskStatus],
    ) -> Task:
        updated = await self._task_repo.update(
            user_id,
            task.id,
            update,
            event=TaskEventCreate(type=event_type, reason=reason),
            expected_statuses=expected,
        )
        await self._publish(user_id, updated, event_type, reason)
        return updated

    async def _reschedule(self, user_id: str, task_id: UUID) -> RescheduleOutcome:
        rescheduled = await self._scheduler.schedule_task(user_id, task_id)
        task = await self._get_task(user_id, task_id)
        return RescheduleOutcome(task=task, rescheduled=rescheduled)

    # ------------------------------------------------------------------
    # Create / edit / delete
    # ------------------------------------------------------------------

    async def create_task(
        self, user_id: str, data: TaskCreate, auto_schedule: bool = False
    ) -> ScheduleTaskResponse:
        """Create a PENDING task, optionally placing it right away."""
        task = await self._task_repo.create(user_id, data)
        await self._publish(user_id, task, TaskEventType.CREATED)
        if not auto_schedule:
            return ScheduleTaskResponse(task=task, scheduled=False)

        outcome = await self._reschedule(user_id, task.id)
        return ScheduleTaskResponse(task=outcome.task, scheduled=outcome.rescheduled)

    async def edit_task(self, user_id: str, task_id: UUID, patch: TaskPatch) -> Task:
        await self._get_task(user_id, task_id)
        return await self._task_repo.update(
            user_id, task_id, TaskUpdate(**patch.model_dump(exclude_none=True))
        )

    async def delete_task(self, user_id: str, task_id: UUID) -> None:
        task = await self._get_task(user_id, task_id)
        await self._remove_external_event(user_id, task)
        if not await self._task_repo.delete(user_id, task_id):
            raise NotFoundError(f"Task {task_id} not found")
        await self._publish(user_id, None, None, task_id=task_id, deleted=True)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def complete(self, user_id: str, task_id: UUID) -> Task:
        task = await self._get_task(user_id, task_id)
        self._require_open(task, "complete")
        return await self._transition(
            user_id,
            task,
            TaskUpdate(status=TaskStatus.COMPLETED),
            TaskEventType.COMPLETED,
            "Marked as completed by user",
            expected=[task.status],
        )

    async def postpone(self, user_id: str, task_id: UUID, reason: Optional[str] = None) -> Task:
        """Drop the task's interval and park it as POSTPONED."""
        task = await self._get_task(user_id, task_id)
        self._require_open(task, "postpone")
        await self._remove_external_event(user_id, task)
        return await self._transition(
            user_id,
            task,
            TaskUpdate.clear_schedule(status=TaskStatus.POSTPONED),
            TaskEventType.POSTPONED,
            reason or "Postponed by user",
            expected=[task.status],
        )

    async def unpostpone(self, user_id: str, task_id: UUID) -> RescheduleOutcome:
        """Return a POSTPONED task to PENDING and offer it to the engine."""
        task = await self._get_task(user_id, task_id)
        self._require_status(task, [TaskStatus.POSTPONED], "unpostpone")
        await self._transition(
            user_id,
            task,
            TaskUpdate.clear_schedule(status=TaskStatus.PENDING),
            TaskEventType.RESCHEDULED,
            "Unpostponed by user",
            expected=[TaskStatus.POSTPONED],
        )
        return await self._reschedule(user_id, task_id)

    async def defer(self, user_id: str, task_id: UUID) -> RescheduleOutcome:
        """Clear a task's slot and immediately look for a new one."""
        task = await self._get_task(user_id, task_id)
        self._require_status(task, [TaskStatus.SCHEDULED, TaskStatus.PENDING], "defer")
        await self._remove_external_event(user_id, task)
        await self._transition(
            user_id,
            task,
            TaskUpdate.clear_schedule(status=TaskStatus.PENDING),
            TaskEventType.POSTPONED,
            "Postponed via notification action",
            expected=[task.status],
        )
        return await self._reschedule(user_id, task_id)

    async def snooze(self, user_id: str, task_id: UUID, minutes: int = 5) -> Task:
        """Restart the task ``minutes`` from now, keeping its length."""
        task = await self._get_task(user_id, task_id)
        self._require_interval(task, "snooze")
        duration = task.scheduled_end - task.scheduled_start
        start = self._clock() + timedelta(minutes=minutes)
        return await self._transition(
            user_id,
            task,
            TaskUpdate(scheduled_start=start, scheduled_end=start + duration),
            TaskEventType.RESCHEDULED,
            f"Snoozed for {minutes} minutes via notification",
            expected=[TaskStatus.SCHEDULED],
        )

    async def extend(self, user_id: str, task_id: UUID, minutes: int = 15) -> Task:
        """Push the task's end out by ``minutes``."""
        task = await self._get_task(user_id, task_id)
        self._require_interval(task, "extend")
        return await self._transition(
            user_id,
            task,
            TaskUpdate(scheduled_end=task.scheduled_end + timedelta(minutes=minutes)),
            TaskEventType.RESCHEDULED,
            f"Extended by {minutes} minutes via notification",
            expected=[TaskStatus.SCHEDULED],
        )

    async def swap(self, user_id: str, task_id_a: UUID, task_id_b: UUID) -> tuple[Task, Task]:
        """Exchange the intervals of two scheduled tasks in one transaction."""
        if task_id_a == task_id_b:
            raise InvalidStateError("Cannot swap a task with itself")

        task_a = await self._get_task(user_id, task_id_a)
        task_b = await self._get_task(user_id, task_id_b)
        self._require_interval(task_a, "swap")
        self._require_interval(task_b, "swap")

        swapped_a, swapped_b = await self._task_repo.swap_intervals(
            user_id, task_id_a, task_id_b, SWAP_REASON
        )
        await self._publish(user_id, swapped_a, TaskEventType.RESCHEDULED, SWAP_REASON)
        await self._publish(user_id, swapped_b, TaskEventType.RESCHEDULED, SWAP_REASON)
        return swapped_a, swapped_b

    async def reschedule(
        self, user_id: str, task_id: UUID, start: datetime, end: datetime
    ) -> Task:
        """Move a task to an explicit interval."""
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            raise ValidationError("end must be after start")

        task = await self._get_task(user_id, task_id)
        self._require_open(task, "reschedule")
        user = await self._user_repo.get(user_id)
        tz = user.timezone if user else "UTC"
        return await self._transition(
            user_id,
            task,
            TaskUpdate(status=TaskStatus.SCHEDULED, scheduled_start=start, scheduled_end=end),
            TaskEventType.RESCHEDULED,
            f"Manually rescheduled to {format_local(start, tz)}",
            expected=[task.status],
        )

    async def cancel(self, user_id: str, task_id: UUID) -> Task:
        return await self._close(user_id, task_id, TaskStatus.CANCELED, TaskEventType.CANCELED, "Canceled by user")

    async def skip(self, user_id: str, task_id: UUID) -> Task:
        return await self._close(user_id, task_id, TaskStatus.SKIPPED, TaskEventType.SKIPPED, "Skipped by user")

    async def _close(
        self,
        user_id: str,
        task_id: UUID,
        status: TaskStatus,
        event_type: TaskEventType,
        reason: str,
    ) -> Task:
        task = await self._get_task(user_id, task_id)
        self._require_open(task, status.value.lower())
        await self._remove_external_event(user_id, task)
        return await self._transition(
            user_id,
            task,
            TaskUpdate(status=status, external_event_id=None, external_event_provider=None),
            event_type,
            reason,
            expected=[task.status],
        )

    # ------------------------------------------------------------------
    # Working hours
    # ------------------------------------------------------------------

    async def update_working_hours(
        self,
        user_id: str,
        workday_start_min: int,
        workday_end_min: int,
        reschedule: bool = True,
    ) -> WorkingHoursResult:
        """
        Store new working hours and optionally re-plan open tasks.

        With ``reschedule`` every PENDING/SCHEDULED task is cleared back to
        PENDING and the batch scheduler runs against the new hours.
        """
        try:
            hours = WorkingHours(
                workday_start_min=workday_start_min,
                workday_end_min=workday_end_min,
            )
        except pydantic.ValidationError as e:
            raise ValidationError("Invalid working hours", details=e.errors()) from e

        user = await self._user_repo.update_working_hours(user_id, hours)
        result = WorkingHoursResult(
            workday_start_min=user.workday_start_min,
            workday_end_min=user.workday_end_min,
            reschedule_ran=reschedule,
        )
        if not reschedule:
            return result

        for task in await self._task_repo.list_by_status(user_id, [TaskStatus.SCHEDULED]):
            await self._remove_external_event(user_id, task)
        reset = await self._task_repo.reset_schedules(
            user_id, [TaskStatus.PENDING, TaskStatus.SCHEDULED]
        )
        logger.info(f"Working hours changed for {user_id}, {reset} task(s) cleared for re-planning")

        batch = await self._scheduler.schedule_all_pending_tasks(user_id)
        result.rescheduled = batch.scheduled
        result.failed = batch.failed
        return result
