"""
Mirrors scheduled tasks onto the user's external calendar.

Every call is best-effort: failures come back as ProviderResult errors for
the caller to log.
"""

from __future__ import annotations

from typing import Mapping

from app.interfaces.calendar_account_repository import ICalendarAccountRepository
from app.interfaces.calendar_provider import ICalendarProvider
from app.models.calendar import ProviderResult
from app.models.enums import CalendarProvider
from app.models.task import Task

# Google first when both are linked
PROVIDER_PREFERENCE = (CalendarProvider.GOOGLE, CalendarProvider.MICROSOFT)


class CalendarSyncService:
    def __init__(
        self,
        account_repo: ICalendarAccountRepository,
        providers: Mapping[CalendarProvider, ICalendarProvider],
    ):
        self._account_repo = account_repo
        self._providers = dict(providers)

    async def create_event_for_task(
        self, user_id: str, task: Task
    ) -> ProviderResult[tuple[CalendarProvider, str]]:
        """Create an event on the preferred linked calendar."""
        linked = {account.provider for account in await self._account_repo.list_by_user(user_id)}
        for provider_name in PROVIDER_PREFERENCE:
            provider = self._providers.get(provider_name)
            if provider_name not in linked or provider is None:
                continue
            result = await provider.create_event(user_id, task)
            if not result.ok:
                return ProviderResult(error=result.error)
            return ProviderResult.success((provider_name, result.value))

        return ProviderResult.failure("calendar", "not_linked", "No calendar linked")

    async def delete_event_for_task(self, user_id: str, task: Task) -> ProviderResult[bool]:
        """Remove the task's linked event; success(False) when there is none."""
        if not task.external_event_id or not task.external_event_provider:
            return ProviderResult.success(False)

        provider = self._providers.get(task.external_event_provider)
        if provider is None:
            return ProviderResult.failure(
                task.external_event_provider.value, "not_linked", "Provider not configured"
            )
        return await provider.delete_event(user_id, task.external_event_id)
