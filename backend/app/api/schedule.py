"""
Schedule API endpoints.

Batch auto-scheduling and the day view.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query

from app.api.deps import CurrentAccount, Scheduler
from app.models.schedule import BatchScheduleResult
from app.models.task import Task

router = APIRouter()


@router.post("/run", response_model=BatchScheduleResult)
async def run_batch_scheduling(user: CurrentAccount, scheduler: Scheduler):
    """Schedule every PENDING task, highest priority first."""
    return await scheduler.schedule_all_pending_tasks(user.id)


@router.get("/day", response_model=list[Task])
async def get_day_schedule(
    user: CurrentAccount,
    scheduler: Scheduler,
    day: Optional[date] = Query(None, description="User-local date (default: today)"),
):
    return await scheduler.get_day_schedule(user.id, day)
