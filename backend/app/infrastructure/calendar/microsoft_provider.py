"""
Microsoft Graph calendar provider.

Busy time comes from /me/calendarView (events not shown as free). Expired
access tokens are refreshed through the Azure AD token endpoint, and a 401
triggers one refresh-and-retry.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

import httpx

from app.core.config import Settings, get_settings
from app.core.logger import setup_logger
from app.interfaces.calendar_account_repository import ICalendarAccountRepository
from app.interfaces.calendar_provider import ICalendarProvider
from app.models.calendar import CalendarAccount, FreeBusyInterval, ProviderResult
from app.models.enums import CalendarProvider
from app.models.task import Task
from app.utils.datetime_utils import ensure_utc, now_utc, parse_iso_to_utc

logger = setup_logger(__name__)

PROVIDER = CalendarProvider.MICROSOFT.value


class _Unauthorized(Exception):
    pass


class MicrosoftCalendarProvider(ICalendarProvider):
    """Outlook / Microsoft 365 calendar over the Graph REST API."""

    def __init__(
        self,
        account_repo: ICalendarAccountRepository,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            account_repo: Token storage
            settings: Application settings
            transport: Optional httpx transport (for testing)
        """
        self._account_repo = account_repo
        self._settings = settings or get_settings()
        self._transport = transport

    @property
    def name(self) -> str:
        return PROVIDER

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.CALENDAR_PROVIDER_TIMEOUT_SECONDS,
            transport=self._transport,
        )

    async def _refresh_token(self, account: CalendarAccount) -> Optional[str]:
        """Exchange the refresh token; returns the new access token or None."""
        if not account.refresh_token:
            return None

        data = {
            "client_id": self._settings.MS_CLIENT_ID,
            "client_secret": self._settings.MS_CLIENT_SECRET,
            "refresh_token": account.refresh_token,
            "grant_type": "refresh_token",
            "scope": self._settings.MS_SCOPES,
        }
        try:
            async with self._client() as client:
                response = await client.post(self._settings.ms_token_url, data=data)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Microsoft token refresh failed for {account.user_id}: {e}")
            return None

        access_token = payload.get("access_token")
        if not access_token:
            return None

        expires_in = payload.get("expires_in")
        await self._account_repo.update_tokens(
            account.user_id,
            CalendarProvider.MICROSOFT,
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_at=now_utc() + timedelta(seconds=int(expires_in)) if expires_in else None,
        )
        return access_token

    async def _access_token(self, user_id: str) -> ProviderResult[str]:
        account = await self._account_repo.get(user_id, CalendarProvider.MICROSOFT)
        if not account or not account.access_token:
            return ProviderResult.failure(PROVIDER, "not_linked", "No Microsoft access token")

        if account.expires_at and ensure_utc(account.expires_at) <= now_utc():
            token = await self._refresh_token(account)
            if not token:
                return ProviderResult.failure(PROVIDER, "auth", "Access token expired and refresh failed")
            return ProviderResult.success(token)

        return ProviderResult.success(account.access_token)

    async def _request(
        self, token: str, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {token}",
            "Prefer": 'outlook.timezone="UTC"',
        }
        async with self._client() as client:
            response = await client.request(
                method, f"{self._settings.MS_GRAPH_BASE_URL}{path}", headers=headers, **kwargs
            )
        if response.status_code == 401:
            raise _Unauthorized()
        return response

    async def _call(self, user_id: str, method: str, path: str, **kwargs: Any):
        """Authorized Graph call with one refresh-and-retry on 401."""
        token_result = await self._access_token(user_id)
        if not token_result.ok:
            return token_result

        try:
            try:
                response = await self._request(token_result.value, method, path, **kwargs)
            except _Unauthorized:
                logger.info(f"Microsoft token rejected for {user_id}, refreshing")
                account = await self._account_repo.get(user_id, CalendarProvider.MICROSOFT)
                token = await self._refresh_token(account) if account else None
                if not token:
                    return ProviderResult.failure(PROVIDER, "auth", "Token refresh failed")
                response = await self._request(token, method, path, **kwargs)
        except _Unauthorized:
            return ProviderResult.failure(PROVIDER, "auth", "Unauthorized after token refresh")
        except httpx.TimeoutException as e:
            return ProviderResult.failure(PROVIDER, "timeout", str(e) or "Request timed out")
        except httpx.HTTPError as e:
            return ProviderResult.failure(PROVIDER, "network", str(e))

        return ProviderResult.success(response)

    async def get_free_busy(
        self, user_id: str, start: datetime, end: datetime
    ) -> ProviderResult[list[FreeBusyInterval]]:
        params = {
            "startDateTime": ensure_utc(start).isoformat(),
            "endDateTime": ensure_utc(end).isoformat(),
            "$select": "start,end,showAs",
            "$filter": "showAs ne 'free'",
        }
        result = await self._call(user_id, "GET", "/me/calendarView", params=params)
        if not result.ok:
            return result

        response = result.value
        if response.is_error:
            return ProviderResult.failure(PROVIDER, "api", f"calendarView returned {response.status_code}")

        busy = []
        for event in response.json().get("value", []):
            event_start = (event.get("start") or {}).get("dateTime")
            event_end = (event.get("end") or {}).get("dateTime")
            if not event_start or not event_end:
                continue
            interval_start = parse_iso_to_utc(event_start)
            interval_end = parse_iso_to_utc(event_end)
            if interval_end > interval_start:
                busy.append(FreeBusyInterval(start=interval_start, end=interval_end))

        busy.sort(key=lambda i: i.start)
        return ProviderResult.success(busy)

    async def create_event(self, user_id: str, task: Task) -> ProviderResult[str]:
        if not task.has_interval:
            return ProviderResult.failure(PROVIDER, "api", "Task has no scheduled interval")

        body = {
            "subject": task.title,
            "body": {"contentType": "text", "content": task.description or ""},
            "start": {"dateTime": ensure_utc(task.scheduled_start).strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": "UTC"},
            "end": {"dateTime": ensure_utc(task.scheduled_end).strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": "UTC"},
            "showAs": "busy",
        }
        result = await self._call(user_id, "POST", "/me/events", json=body)
        if not result.ok:
            return result

        response = result.value
        if response.is_error:
            return ProviderResult.failure(PROVIDER, "api", f"Event creation returned {response.status_code}")
        return ProviderResult.success(response.json()["id"])

    async def delete_event(self, user_id: str, event_id: str) -> ProviderResult[bool]:
        result = await self._call(user_id, "DELETE", f"/me/events/{event_id}")
        if not result.ok:
            return result

        response = result.value
        if response.status_code == 404:
            return ProviderResult.success(False)
        if response.is_error:
            return ProviderResult.failure(PROVIDER, "api", f"Event deletion returned {response.status_code}")
        return ProviderResult.success(True)
