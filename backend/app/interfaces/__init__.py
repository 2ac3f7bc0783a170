"""Abstract interfaces for infrastructure abstraction."""

from app.interfaces.auth_provider import IAuthProvider
from app.interfaces.calendar_account_repository import ICalendarAccountRepository
from app.interfaces.calendar_provider import ICalendarProvider
from app.interfaces.notifier import INotifier
from app.interfaces.task_repository import ITaskRepository
from app.interfaces.user_repository import IUserRepository

__all__ = [
    "ITaskRepository",
    "IUserRepository",
    "ICalendarAccountRepository",
    "ICalendarProvider",
    "INotifier",
    "IAuthProvider",
]
