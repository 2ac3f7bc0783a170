"""Pydantic models (schemas) for the application."""

from app.models.enums import (
    CalendarProvider,
    Priority,
    TaskEventType,
    TaskSource,
    TaskStatus,
)
from app.models.task import Task, TaskCreate, TaskPatch, TaskUpdate
from app.models.task_event import TaskEvent, TaskEventCreate
from app.models.user import UserAccount, UserCreate, WorkingHours
from app.models.calendar import (
    AvailabilityResponse,
    CalendarAccount,
    FreeBusyInterval,
    ProviderError,
    ProviderResult,
)
from app.models.schedule import BatchScheduleResult, DailyReport, WorkWindow

__all__ = [
    # Enums
    "TaskStatus",
    "Priority",
    "TaskSource",
    "TaskEventType",
    "CalendarProvider",
    # Task
    "Task",
    "TaskCreate",
    "TaskPatch",
    "TaskUpdate",
    "TaskEvent",
    "TaskEventCreate",
    # User
    "UserAccount",
    "UserCreate",
    "WorkingHours",
    # Calendar
    "AvailabilityResponse",
    "CalendarAccount",
    "FreeBusyInterval",
    "ProviderError",
    "ProviderResult",
    # Schedule
    "BatchScheduleResult",
    "DailyReport",
    "WorkWindow",
]
