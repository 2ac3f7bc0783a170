"""
Unit tests for the Microsoft Graph calendar provider.

Graph and the Azure AD token endpoint are served by an httpx MockTransport.
"""

import json
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import httpx
import pytest

from app.core.config import Settings
from app.infrastructure.calendar.microsoft_provider import MicrosoftCalendarProvider
from app.models.calendar import CalendarAccountUpsert, FreeBusyInterval
from app.models.enums import CalendarProvider, TaskStatus
from app.models.task import Task

UTC = timezone.utc
START = datetime(2031, 3, 10, 9, 0, tzinfo=UTC)
END = datetime(2031, 3, 10, 18, 0, tzinfo=UTC)
USER_ID = "test_user"


@pytest.fixture
def ms_settings():
    return Settings(ENVIRONMENT="test", MS_CLIENT_ID="client", MS_CLIENT_SECRET="secret")


async def link(account_repo, access_token="token-1", refresh_token="refresh-1", expires_at=None):
    await account_repo.upsert(
        USER_ID,
        CalendarAccountUpsert(
            provider=CalendarProvider.MICROSOFT,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        ),
    )


def calendar_view(events):
    return httpx.Response(200, json={"value": events})


def make_provider(account_repo, settings, handler):
    return MicrosoftCalendarProvider(account_repo, settings=settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_free_busy(account_repo, ms_settings):
    await link(account_repo)
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return calendar_view([
            {
                "start": {"dateTime": "2031-03-10T13:00:00.0000000", "timeZone": "UTC"},
                "end": {"dateTime": "2031-03-10T14:00:00.0000000", "timeZone": "UTC"},
                "showAs": "busy",
            },
            {
                "start": {"dateTime": "2031-03-10T10:00:00.0000000", "timeZone": "UTC"},
                "end": {"dateTime": "2031-03-10T10:30:00.0000000", "timeZone": "UTC"},
                "showAs": "tentative",
            },
        ])

    provider = make_provider(account_repo, ms_settings, handler)
    result = await provider.get_free_busy(USER_ID, START, END)

    assert result.ok
    assert result.value == [
        FreeBusyInterval(
            start=datetime(2031, 3, 10, 10, 0, tzinfo=UTC),
            end=datetime(2031, 3, 10, 10, 30, tzinfo=UTC),
        ),
        FreeBusyInterval(
            start=datetime(2031, 3, 10, 13, 0, tzinfo=UTC),
            end=datetime(2031, 3, 10, 14, 0, tzinfo=UTC),
        ),
    ]
    assert seen[0].url.path.endswith("/me/calendarView")
    assert seen[0].headers["Authorization"] == "Bearer token-1"
    assert seen[0].url.params["$filter"] == "showAs ne 'free'"


@pytest.mark.asyncio
async def test_not_linked(account_repo, ms_settings):
    provider = make_provider(account_repo, ms_settings, lambda request: calendar_view([]))

    result = await provider.get_free_busy(USER_ID, START, END)

    assert not result.ok
    assert result.error.kind == "not_linked"


@pytest.mark.asyncio
async def test_unauthorized_triggers_one_refresh(account_repo, ms_settings):
    await link(account_repo)
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.host)
        if request.url.host == "login.microsoftonline.com":
            return httpx.Response(
                200,
                json={"access_token": "token-2", "refresh_token": "refresh-2", "expires_in": 3600},
            )
        if request.headers["Authorization"] == "Bearer token-1":
            return httpx.Response(401)
        return calendar_view([])

    provider = make_provider(account_repo, ms_settings, handler)
    result = await provider.get_free_busy(USER_ID, START, END)

    assert result.ok
    assert calls == ["graph.microsoft.com", "login.microsoftonline.com", "graph.microsoft.com"]
    account = await account_repo.get(USER_ID, CalendarProvider.MICROSOFT)
    assert account.access_token == "token-2"
    assert account.refresh_token == "refresh-2"
    assert account.expires_at is not None


@pytest.mark.asyncio
async def test_refresh_failure_is_auth_error(account_repo, ms_settings):
    await link(account_repo)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "login.microsoftonline.com":
            return httpx.Response(400, json={"error": "invalid_grant"})
        return httpx.Response(401)

    provider = make_provider(account_repo, ms_settings, handler)
    result = await provider.get_free_busy(USER_ID, START, END)

    assert not result.ok
    assert result.error.kind == "auth"


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_first(account_repo, ms_settings):
    await link(account_repo, expires_at=datetime(2020, 1, 1, tzinfo=UTC))
    auth_headers = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "login.microsoftonline.com":
            return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})
        auth_headers.append(request.headers["Authorization"])
        return calendar_view([])

    provider = make_provider(account_repo, ms_settings, handler)
    result = await provider.get_free_busy(USER_ID, START, END)

    assert result.ok
    assert auth_headers == ["Bearer fresh"]
    account = await account_repo.get(USER_ID, CalendarProvider.MICROSOFT)
    assert account.refresh_token == "refresh-1"


@pytest.mark.asyncio
async def test_network_error(account_repo, ms_settings):
    await link(account_repo)

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = make_provider(account_repo, ms_settings, handler)
    result = await provider.get_free_busy(USER_ID, START, END)

    assert not result.ok
    assert result.error.kind == "network"


@pytest.mark.asyncio
async def test_timeout(account_repo, ms_settings):
    await link(account_repo)

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    provider = make_provider(account_repo, ms_settings, handler)
    result = await provider.get_free_busy(USER_ID, START, END)

    assert result.error.kind == "timeout"


@pytest.mark.asyncio
async def test_server_error_is_api_error(account_repo, ms_settings):
    await link(account_repo)
    provider = make_provider(account_repo, ms_settings, lambda request: httpx.Response(503))

    result = await provider.get_free_busy(USER_ID, START, END)

    assert result.error.kind == "api"


@pytest.mark.asyncio
async def test_create_and_delete_event(account_repo, ms_settings):
    await link(account_repo)
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            bodies.append(request.read())
            return httpx.Response(201, json={"id": "AAMk-1"})
        if request.url.path.endswith("/AAMk-1"):
            return httpx.Response(204)
        return httpx.Response(404)

    provider = make_provider(account_repo, ms_settings, handler)
    task = Task(
        id=uuid4(),
        user_id=USER_ID,
        title="Write report",
        status=TaskStatus.SCHEDULED,
        scheduled_start=START,
        scheduled_end=START + timedelta(minutes=30),
        created_at=START,
        updated_at=START,
    )

    created = await provider.create_event(USER_ID, task)
    assert created.ok and created.value == "AAMk-1"
    payload = json.loads(bodies[0])
    assert payload["subject"] == "Write report"
    assert payload["start"] == {"dateTime": "2031-03-10T09:00:00", "timeZone": "UTC"}

    deleted = await provider.delete_event(USER_ID, "AAMk-1")
    assert deleted.ok and deleted.value is True

    missing = await provider.delete_event(USER_ID, "gone")
    assert missing.ok and missing.value is False
