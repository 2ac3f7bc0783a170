"""
Google Calendar provider.

Uses the Calendar v3 API through googleapiclient. The client is synchronous,
so calls run in a worker thread. Expired credentials are refreshed before the
call and a 401 triggers one refresh-and-retry.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.core.config import Settings, get_settings
from app.core.logger import setup_logger
from app.interfaces.calendar_account_repository import ICalendarAccountRepository
from app.interfaces.calendar_provider import ICalendarProvider
from app.models.calendar import FreeBusyInterval, ProviderResult
from app.models.enums import CalendarProvider
from app.models.task import Task
from app.utils.datetime_utils import ensure_utc, parse_iso_to_utc, to_naive_utc

logger = setup_logger(__name__)

PROVIDER = CalendarProvider.GOOGLE.value


def build_calendar_service(credentials: Credentials):
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


class GoogleCalendarProvider(ICalendarProvider):
    """Google Calendar over the v3 REST API."""

    def __init__(
        self,
        account_repo: ICalendarAccountRepository,
        settings: Optional[Settings] = None,
        service_factory: Optional[Callable[[Credentials], Any]] = None,
    ):
        """
        Args:
            account_repo: Token storage
            settings: Application settings
            service_factory: Builds a Calendar service from credentials (for testing)
        """
        self._account_repo = account_repo
        self._settings = settings or get_settings()
        self._service_factory = service_factory or build_calendar_service

    @property
    def name(self) -> str:
        return PROVIDER

    @property
    def _calendar_id(self) -> str:
        return self._settings.GOOGLE_CALENDAR_ID

    async def _refresh(self, user_id: str, credentials: Credentials) -> bool:
        """Refresh credentials in place and store the new tokens."""
        if not credentials.refresh_token:
            return False
        try:
            await asyncio.to_thread(credentials.refresh, Request())
        except (RefreshError, TransportError) as e:
            logger.warning(f"Google token refresh failed for {user_id}: {e}")
            return False

        await self._account_repo.update_tokens(
            user_id,
            CalendarProvider.GOOGLE,
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expires_at=ensure_utc(credentials.expiry),
        )
        return True

    async def _credentials(self, user_id: str) -> ProviderResult[Credentials]:
        account = await self._account_repo.get(user_id, CalendarProvider.GOOGLE)
        if not account or not account.access_token:
            return ProviderResult.failure(PROVIDER, "not_linked", "No Google access token")

        credentials = Credentials(
            token=account.access_token,
            refresh_token=account.refresh_token,
            token_uri=self._settings.GOOGLE_TOKEN_URI,
            client_id=self._settings.GOOGLE_CLIENT_ID or None,
            client_secret=self._settings.GOOGLE_CLIENT_SECRET or None,
            # google-auth compares against naive UTC
            expiry=to_naive_utc(account.expires_at),
        )
        if credentials.expired and not await self._refresh(user_id, credentials):
            return ProviderResult.failure(PROVIDER, "auth", "Access token expired and refresh failed")
        return ProviderResult.success(credentials)

    async def _execute(
        self,
        user_id: str,
        make_request: Callable[[Any], Any],
        missing_ok: bool = False,
    ) -> ProviderResult[Any]:
        """
        Run one API request with a single refresh-and-retry on 401.

        With ``missing_ok`` a 404/410 yields success(None).
        """
        creds_result = await self._credentials(user_id)
        if not creds_result.ok:
            return creds_result
        credentials = creds_result.value

        for attempt in range(2):
            service = self._service_factory(credentials)
            try:
                response = await asyncio.to_thread(lambda: make_request(service).execute())
                return ProviderResult.success(response)
            except HttpError as e:
                status = e.resp.status
                if missing_ok and status in (404, 410):
                    return ProviderResult.success(None)
                if status == 401 and attempt == 0:
                    logger.info(f"Google token rejected for {user_id}, refreshing")
                    if await self._refresh(user_id, credentials):
                        continue
                    return ProviderResult.failure(PROVIDER, "auth", "Token refresh failed")
                if status in (401, 403):
                    return ProviderResult.failure(PROVIDER, "auth", f"Google API returned {status}")
                return ProviderResult.failure(PROVIDER, "api", f"Google API returned {status}")
            except RefreshError as e:
                return ProviderResult.failure(PROVIDER, "auth", str(e))
            except TimeoutError as e:
                return ProviderResult.failure(PROVIDER, "timeout", str(e) or "Request timed out")
            except (TransportError, httplib2.HttpLib2Error) as e:
                return ProviderResult.failure(PROVIDER, "network", str(e) or type(e).__name__)
            except OSError as e:
                return ProviderResult.failure(PROVIDER, "network", str(e))

        return ProviderResult.failure(PROVIDER, "auth", "Unauthorized after token refresh")

    async def get_free_busy(
        self, user_id: str, start: datetime, end: datetime
    ) -> ProviderResult[list[FreeBusyInterval]]:
        body = {
            "timeMin": ensure_utc(start).isoformat(),
            "timeMax": ensure_utc(end).isoformat(),
            "items": [{"id": self._calendar_id}],
        }
        result = await self._execute(user_id, lambda service: service.freebusy().query(body=body))
        if not result.ok:
            return result

        calendar = (result.value.get("calendars") or {}).get(self._calendar_id) or {}
        if calendar.get("errors"):
            reason = calendar["errors"][0].get("reason", "unknown")
            return ProviderResult.failure(PROVIDER, "api", f"freebusy error: {reason}")

        busy = []
        for period in calendar.get("busy", []):
            period_start = parse_iso_to_utc(period["start"])
            period_end = parse_iso_to_utc(period["end"])
            if period_end > period_start:
                busy.append(FreeBusyInterval(start=period_start, end=period_end))

        busy.sort(key=lambda i: i.start)
        return ProviderResult.success(busy)

    async def create_event(self, user_id: str, task: Task) -> ProviderResult[str]:
        if not task.has_interval:
            return ProviderResult.failure(PROVIDER, "api", "Task has no scheduled interval")

        body = {
            "summary": task.title,
            "description": task.description or "",
            "start": {"dateTime": ensure_utc(task.scheduled_start).isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": ensure_utc(task.scheduled_end).isoformat(), "timeZone": "UTC"},
            "transparency": "opaque",
        }
        result = await self._execute(
            user_id,
            lambda service: service.events().insert(calendarId=self._calendar_id, body=body),
        )
        if not result.ok:
            return result
        return ProviderResult.success(result.value["id"])

    async def delete_event(self, user_id: str, event_id: str) -> ProviderResult[bool]:
        result = await self._execute(
            user_id,
            lambda service: service.events().delete(calendarId=self._calendar_id, eventId=event_id),
            missing_ok=True,
        )
        if not result.ok:
            return result
        return ProviderResult.success(result.value is not None)
