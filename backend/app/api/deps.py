"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from app.core.config import get_settings
from app.core.exceptions import AuthenticationError
from app.interfaces.auth_provider import IAuthProvider, User
from app.interfaces.calendar_account_repository import ICalendarAccountRepository
from app.interfaces.calendar_provider import ICalendarProvider
from app.interfaces.notifier import INotifier
from app.interfaces.task_repository import ITaskRepository
from app.interfaces.user_repository import IUserRepository
from app.models.enums import CalendarProvider
from app.models.user import UserAccount, UserCreate
from app.services.calendar_sync_service import CalendarSyncService
from app.services.free_busy_service import FreeBusyService
from app.services.replanning_service import ReplanningService
from app.services.scheduler_service import SchedulerService
from app.services.task_event_bus import TaskEventBus, task_event_bus


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_task_repository() -> ITaskRepository:
    """Get task repository instance."""
    from app.infrastructure.local.task_repository import SqliteTaskRepository
    return SqliteTaskRepository()


@lru_cache()
def get_user_repository() -> IUserRepository:
    """Get user repository instance."""
    from app.infrastructure.local.user_repository import SqliteUserRepository
    return SqliteUserRepository()


@lru_cache()
def get_calendar_account_repository() -> ICalendarAccountRepository:
    """Get calendar account repository instance."""
    from app.infrastructure.local.calendar_account_repository import (
        SqliteCalendarAccountRepository,
    )
    return SqliteCalendarAccountRepository()


# ===========================================
# Provider Dependencies
# ===========================================


@lru_cache()
def get_calendar_providers() -> dict[CalendarProvider, ICalendarProvider]:
    """Get the external calendar providers keyed by provider name."""
    from app.infrastructure.calendar.google_provider import GoogleCalendarProvider
    from app.infrastructure.calendar.microsoft_provider import MicrosoftCalendarProvider

    account_repo = get_calendar_account_repository()
    return {
        CalendarProvider.GOOGLE: GoogleCalendarProvider(account_repo),
        CalendarProvider.MICROSOFT: MicrosoftCalendarProvider(account_repo),
    }


@lru_cache()
def get_notifier() -> INotifier:
    """Get reminder notifier instance."""
    from app.infrastructure.local.log_notifier import LogNotifier
    return LogNotifier()


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    from app.infrastructure.local.mock_auth import MockAuthProvider
    return MockAuthProvider(enabled=get_settings().AUTH_ENABLED)


def get_event_bus() -> TaskEventBus:
    return task_event_bus


# ===========================================
# Service Dependencies
# ===========================================


@lru_cache()
def get_free_busy_service() -> FreeBusyService:
    return FreeBusyService(get_calendar_account_repository(), get_calendar_providers())


@lru_cache()
def get_calendar_sync_service() -> CalendarSyncService:
    return CalendarSyncService(get_calendar_account_repository(), get_calendar_providers())


@lru_cache()
def get_scheduler_service() -> SchedulerService:
    """Get scheduling engine instance."""
    return SchedulerService(
        task_repo=get_task_repository(),
        user_repo=get_user_repository(),
        free_busy=get_free_busy_service(),
        calendar_sync=get_calendar_sync_service(),
        event_bus=get_event_bus(),
    )


@lru_cache()
def get_replanning_service() -> ReplanningService:
    return ReplanningService(
        task_repo=get_task_repository(),
        user_repo=get_user_repository(),
        scheduler=get_scheduler_service(),
        calendar_sync=get_calendar_sync_service(),
        event_bus=get_event_bus(),
    )


# ===========================================
# User Authentication
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get current authenticated user.

    With auth disabled every request is the development user.
    """
    if not auth_provider.is_enabled():
        return User(id="dev_user", email="dev@example.com", display_name="Developer")

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        return await auth_provider.verify_token(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        )


async def get_current_account(
    user: Annotated[User, Depends(get_current_user)],
    user_repo: Annotated[IUserRepository, Depends(get_user_repository)],
) -> UserAccount:
    """Stored account of the caller, created with default working hours on first use."""
    account = await user_repo.get(user.id)
    if account:
        return account

    settings = get_settings()
    return await user_repo.create(
        user.id,
        UserCreate(
            email=user.email or f"{user.id}@example.com",
            display_name=user.display_name,
            timezone=settings.DEFAULT_TIMEZONE,
            workday_start_min=settings.DEFAULT_WORKDAY_START_MIN,
            workday_end_min=settings.DEFAULT_WORKDAY_END_MIN,
        ),
    )


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

TaskRepo = Annotated[ITaskRepository, Depends(get_task_repository)]
UserRepo = Annotated[IUserRepository, Depends(get_user_repository)]
CalendarAccountRepo = Annotated[ICalendarAccountRepository, Depends(get_calendar_account_repository)]
FreeBusy = Annotated[FreeBusyService, Depends(get_free_busy_service)]
Scheduler = Annotated[SchedulerService, Depends(get_scheduler_service)]
Replanning = Annotated[ReplanningService, Depends(get_replanning_service)]
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentAccount = Annotated[UserAccount, Depends(get_current_account)]
