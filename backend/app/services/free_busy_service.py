"""
Free/busy aggregation across a user's linked calendars.

Providers are queried concurrently; each call runs under its own time budget
and a failing or slow provider contributes no busy time instead of failing
the aggregation.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Mapping, Optional

from app.core.config import Settings, get_settings
from app.core.logger import setup_logger
from app.interfaces.calendar_account_repository import ICalendarAccountRepository
from app.interfaces.calendar_provider import ICalendarProvider
from app.models.calendar import (
    AvailabilityResponse,
    AvailableSlot,
    FreeBusyInterval,
    SlotCheckResponse,
)
from app.models.enums import CalendarProvider
from app.models.user import UserAccount
from app.services.slot_finder import (
    clip_intervals,
    find_available_slots,
    is_slot_available,
    merge_intervals,
)
from app.utils.datetime_utils import local_minutes_to_utc

logger = setup_logger(__name__)


class FreeBusyService:
    """Merged busy time of every linked calendar."""

    def __init__(
        self,
        account_repo: ICalendarAccountRepository,
        providers: Mapping[CalendarProvider, ICalendarProvider],
        settings: Optional[Settings] = None,
    ):
        self._account_repo = account_repo
        self._providers = dict(providers)
        self._settings = settings or get_settings()

    async def _query_provider(
        self,
        provider: ICalendarProvider,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[FreeBusyInterval]:
        timeout = self._settings.CALENDAR_PROVIDER_TIMEOUT_SECONDS
        try:
            result = await asyncio.wait_for(
                provider.get_free_busy(user_id, start, end), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"{provider.name} free/busy timed out after {timeout}s for {user_id}")
            return []
        except Exception as e:
            logger.error(f"{provider.name} free/busy failed for {user_id}: {e}")
            return []

        if not result.ok:
            logger.warning(
                f"{provider.name} free/busy unavailable for {user_id}: "
                f"{result.error.kind} - {result.error.message}"
            )
            return []
        return list(result.value or [])

    async def get_user_free_busy(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[FreeBusyInterval]:
        """
        Busy intervals of all linked calendars within [start, end).

        Returns:
            Merged, sorted, non-overlapping intervals
        """
        accounts = await self._account_repo.list_by_user(user_id)
        providers = [
            self._providers[account.provider]
            for account in accounts
            if account.provider in self._providers
        ]
        if not providers:
            return []

        results = await asyncio.gather(
            *(self._query_provider(p, user_id, start, end) for p in providers)
        )
        busy = [interval for intervals in results for interval in intervals]
        return merge_intervals(clip_intervals(busy, start, end))

    async def check_slot(self, user_id: str, slot: FreeBusyInterval) -> SlotCheckResponse:
        busy = await self.get_user_free_busy(user_id, slot.start, slot.end)
        return SlotCheckResponse(
            start=slot.start,
            end=slot.end,
            available=is_slot_available(slot, busy),
            conflicts=busy,
        )

    async def get_availability(self, user: UserAccount, day: date) -> AvailabilityResponse:
        """Busy and free time of the user's working hours on ``day``."""
        work_start = local_minutes_to_utc(day, user.workday_start_min, user.timezone)
        work_end = local_minutes_to_utc(day, user.workday_end_min, user.timezone)
        min_minutes = self._settings.AVAILABILITY_MIN_SLOT_MINUTES

        busy = await self.get_user_free_busy(user.id, work_start, work_end)
        slots = find_available_slots(busy, work_start, work_end, min_minutes)
        available = [
            AvailableSlot(start=slot.start, end=slot.end, duration_minutes=int(slot.minutes))
            for slot in slots
        ]
        return AvailabilityResponse(
            date=day.isoformat(),
            timezone=user.timezone,
            work_start=work_start,
            work_end=work_end,
            busy=busy,
            available=available,
            total_available_minutes=int(sum(slot.minutes for slot in slots)),
        )
