"""
Calendar API endpoints.

Linked calendar accounts, working-day availability and slot checks.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.api.deps import CalendarAccountRepo, CurrentAccount, FreeBusy
from app.models.calendar import (
    AvailabilityResponse,
    CalendarAccountUpsert,
    FreeBusyInterval,
    SlotCheckResponse,
)
from app.models.enums import CalendarProvider
from app.utils.datetime_utils import ensure_utc, get_user_today

router = APIRouter()


class LinkedCalendar(BaseModel):
    """Public view of a linked account (no tokens)."""

    provider: CalendarProvider
    has_refresh_token: bool


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    user: CurrentAccount,
    free_busy: FreeBusy,
    day: Optional[date] = Query(None, description="User-local date (default: today)"),
):
    """Busy intervals and free slots of the user's working hours."""
    return await free_busy.get_availability(user, day or get_user_today(user.timezone))


@router.get("/slot-check", response_model=SlotCheckResponse)
async def check_slot(
    user: CurrentAccount,
    free_busy: FreeBusy,
    start: datetime = Query(..., description="Slot start (ISO 8601 with offset)"),
    end: datetime = Query(..., description="Slot end (ISO 8601 with offset)"),
):
    """Check a proposed slot against the user's external calendars."""
    try:
        slot = FreeBusyInterval(start=ensure_utc(start), end=ensure_utc(end))
    except PydanticValidationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end must be after start",
        )
    return await free_busy.check_slot(user.id, slot)


@router.get("/accounts", response_model=list[LinkedCalendar])
async def list_linked_calendars(user: CurrentAccount, repo: CalendarAccountRepo):
    accounts = await repo.list_by_user(user.id)
    return [
        LinkedCalendar(provider=a.provider, has_refresh_token=bool(a.refresh_token))
        for a in accounts
    ]


@router.put("/accounts", response_model=LinkedCalendar)
async def link_calendar(payload: CalendarAccountUpsert, user: CurrentAccount, repo: CalendarAccountRepo):
    """Store OAuth tokens obtained by the client for a provider."""
    account = await repo.upsert(user.id, payload)
    return LinkedCalendar(provider=account.provider, has_refresh_token=bool(account.refresh_token))


@router.delete("/accounts/{provider}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_calendar(provider: CalendarProvider, user: CurrentAccount, repo: CalendarAccountRepo):
    if not await repo.delete(user.id, provider):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{provider.value} calendar not linked",
        )
