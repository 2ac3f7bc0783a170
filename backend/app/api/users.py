"""
User profile and working-hours endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import CurrentAccount, Replanning
from app.api.errors import http_error
from app.core.exceptions import PlannerError
from app.models.schedule import WorkingHoursRequest, WorkingHoursResult
from app.models.user import UserAccount, WorkingHours

router = APIRouter()


@router.get("/me", response_model=UserAccount)
async def get_current_user_profile(user: CurrentAccount):
    return user


@router.get("/me/working-hours", response_model=WorkingHours)
async def get_working_hours(user: CurrentAccount):
    return user.working_hours


@router.put("/me/working-hours", response_model=WorkingHoursResult)
async def update_working_hours(
    payload: WorkingHoursRequest,
    user: CurrentAccount,
    service: Replanning,
):
    """
    Update working hours.

    With ``reschedule`` (default) pending and scheduled tasks are cleared and
    re-planned against the new hours.
    """
    try:
        return await service.update_working_hours(
            user.id,
            payload.workday_start_min,
            payload.workday_end_min,
            reschedule=payload.reschedule,
        )
    except PlannerError as e:
        raise http_error(e)
