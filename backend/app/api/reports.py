"""
Reports API endpoints.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query

from app.api.deps import CurrentAccount, TaskRepo
from app.models.schedule import DailyReport
from app.services.reporting_service import generate_daily_report
from app.utils.datetime_utils import get_user_today

router = APIRouter()


@router.get("/daily", response_model=DailyReport)
async def get_daily_report(
    user: CurrentAccount,
    repo: TaskRepo,
    day: Optional[date] = Query(None, description="User-local date (default: today)"),
):
    """Status counts of the tasks created on a day, with suggestions."""
    return await generate_daily_report(repo, user, day or get_user_today(user.timezone))
