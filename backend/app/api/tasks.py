"""
Tasks API endpoints.

CRUD plus the scheduling and re-planning actions of a single task.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import CurrentAccount, Replanning, Scheduler, TaskRepo
from app.api.errors import http_error
from app.core.exceptions import PlannerError
from app.models.enums import TaskStatus
from app.models.schedule import (
    ExtendRequest,
    ManualRescheduleRequest,
    PostponeRequest,
    RescheduleOutcome,
    ScheduleTaskResponse,
    SnoozeRequest,
    SwapRequest,
    SwapResponse,
)
from app.models.task import Task, TaskCreate, TaskPatch
from app.models.task_event import TaskEvent

router = APIRouter()


@router.post("", response_model=ScheduleTaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task: TaskCreate,
    user: CurrentAccount,
    service: Replanning,
    auto_schedule: bool = Query(False, description="Place the task right away"),
):
    """Create a new task."""
    return await service.create_task(user.id, task, auto_schedule=auto_schedule)


@router.get("", response_model=list[Task])
async def list_tasks(
    user: CurrentAccount,
    repo: TaskRepo,
    status: Optional[TaskStatus] = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """List tasks, newest first."""
    return await repo.list(user.id, status=status, limit=limit, offset=offset)


@router.post("/swap", response_model=SwapResponse)
async def swap_tasks(request: SwapRequest, user: CurrentAccount, service: Replanning):
    """Exchange the scheduled intervals of two tasks."""
    try:
        task_a, task_b = await service.swap(user.id, request.task_id_a, request.task_id_b)
    except PlannerError as e:
        raise http_error(e)
    return SwapResponse(task_a=task_a, task_b=task_b)


@router.get("/{task_id}", response_model=Task)
async def get_task(task_id: UUID, user: CurrentAccount, repo: TaskRepo):
    """Get a task by ID."""
    task = await repo.get(user.id, task_id)
    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task {task_id} not found",
        )
    return task


@router.patch("/{task_id}", response_model=Task)
async def update_task(task_id: UUID, patch: TaskPatch, user: CurrentAccount, service: Replanning):
    """Edit title, description, priority or duration."""
    try:
        return await service.edit_task(user.id, task_id, patch)
    except PlannerError as e:
        raise http_error(e)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: UUID, user: CurrentAccount, service: Replanning):
    """Delete a task and its linked calendar event."""
    try:
        await service.delete_task(user.id, task_id)
    except PlannerError as e:
        raise http_error(e)


@router.get("/{task_id}/events", response_model=list[TaskEvent])
async def list_task_events(task_id: UUID, user: CurrentAccount, repo: TaskRepo):
    """Audit trail of a task."""
    if not await repo.get(user.id, task_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task {task_id} not found",
        )
    return await repo.list_events(user.id, task_id)


@router.post("/{task_id}/schedule", response_model=ScheduleTaskResponse)
async def schedule_task(
    task_id: UUID,
    user: CurrentAccount,
    scheduler: Scheduler,
    repo: TaskRepo,
):
    """Auto-schedule one task. ``scheduled=false`` means no slot today or tomorrow."""
    try:
        scheduled = await scheduler.schedule_task(user.id, task_id)
    except PlannerError as e:
        raise http_error(e)
    return ScheduleTaskResponse(task=await repo.get(user.id, task_id), scheduled=scheduled)


@router.post("/{task_id}/complete", response_model=Task)
async def complete_task(task_id: UUID, user: CurrentAccount, service: Replanning):
    try:
        return await service.complete(user.id, task_id)
    except PlannerError as e:
        raise http_error(e)


@router.post("/{task_id}/postpone", response_model=Task)
async def postpone_task(
    task_id: UUID,
    user: CurrentAccount,
    service: Replanning,
    request: Optional[PostponeRequest] = None,
):
    """Drop the task's slot and park it as POSTPONED."""
    try:
        return await service.postpone(user.id, task_id, request.reason if request else None)
    except PlannerError as e:
        raise http_error(e)


@router.post("/{task_id}/unpostpone", response_model=RescheduleOutcome)
async def unpostpone_task(task_id: UUID, user: CurrentAccount, service: Replanning):
    try:
        return await service.unpostpone(user.id, task_id)
    except PlannerError as e:
        raise http_error(e)


@router.post("/{task_id}/defer", response_model=RescheduleOutcome)
async def defer_task(task_id: UUID, user: CurrentAccount, service: Replanning):
    """Clear the task's slot and look for a new one right away."""
    try:
        return await service.defer(user.id, task_id)
    except PlannerError as e:
        raise http_error(e)


@router.post("/{task_id}/snooze", response_model=Task)
async def snooze_task(
    task_id: UUID,
    user: CurrentAccount,
    service: Replanning,
    request: Optional[SnoozeRequest] = None,
):
    minutes = (request or SnoozeRequest()).minutes
    try:
        return await service.snooze(user.id, task_id, minutes)
    except PlannerError as e:
        raise http_error(e)


@router.post("/{task_id}/extend", response_model=Task)
async def extend_task(
    task_id: UUID,
    user: CurrentAccount,
    service: Replanning,
    request: Optional[ExtendRequest] = None,
):
    minutes = (request or ExtendRequest()).minutes
    try:
        return await service.extend(user.id, task_id, minutes)
    except PlannerError as e:
        raise http_error(e)


@router.post("/{task_id}/reschedule", response_model=Task)
async def reschedule_task(
    task_id: UUID,
    request: ManualRescheduleRequest,
    user: CurrentAccount,
    service: Replanning,
):
    """Move a task to an explicit interval."""
    try:
        return await service.reschedule(user.id, task_id, request.start, request.end)
    except PlannerError as e:
        raise http_error(e)


@router.post("/{task_id}/cancel", response_model=Task)
async def cancel_task(task_id: UUID, user: CurrentAccount, service: Replanning):
    try:
        return await service.cancel(user.id, task_id)
    except PlannerError as e:
        raise http_error(e)


@router.post("/{task_id}/skip", response_model=Task)
async def skip_task(task_id: UUID, user: CurrentAccount, service: Replanning):
    try:
        return await service.skip(user.id, task_id)
    except PlannerError as e:
        raise http_error(e)
