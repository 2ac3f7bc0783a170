"""
Shared fixtures: a throwaway SQLite database per test and the repositories
bound to it.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings
from app.infrastructure.local.calendar_account_repository import SqliteCalendarAccountRepository
from app.infrastructure.local.database import init_db
from app.infrastructure.local.task_repository import SqliteTaskRepository
from app.infrastructure.local.user_repository import SqliteUserRepository
from app.models.user import UserCreate

# Monday, before the default 09:00 start
FIXED_NOW = datetime(2031, 3, 10, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
async def session_factory(tmp_path):
    """File-backed SQLite so concurrent sessions see the same data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)

    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def test_user_id() -> str:
    return "test_user"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENVIRONMENT="test",
        SCHEDULING_BUFFER_MINUTES=15,
        END_OF_DAY_RESERVE_MINUTES=0,
        LOW_PRIORITY_ALIGNMENT="gap_end",
        REMINDER_LEAD_MINUTES=10,
    )


@pytest.fixture
def task_repo(session_factory) -> SqliteTaskRepository:
    return SqliteTaskRepository(session_factory=session_factory)


@pytest.fixture
def user_repo(session_factory) -> SqliteUserRepository:
    return SqliteUserRepository(session_factory=session_factory)


@pytest.fixture
def account_repo(session_factory) -> SqliteCalendarAccountRepository:
    return SqliteCalendarAccountRepository(session_factory=session_factory)


@pytest.fixture
async def user(user_repo, test_user_id):
    """UTC user working 09:00-18:00."""
    return await user_repo.create(
        test_user_id,
        UserCreate(email="test@example.com", display_name="Test", timezone="UTC"),
    )


@pytest.fixture
def clock():
    return lambda: FIXED_NOW
