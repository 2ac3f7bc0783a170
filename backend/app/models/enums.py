"""
Enum definitions for the application.

These enums are used across models and provide type-safe status/priority values.
"""

from enum import Enum


class TaskStatus(str, Enum):
    """
    Task lifecycle status.

    PENDING -> SCHEDULED -> COMPLETED
    SCHEDULED -> POSTPONED -> PENDING
    any non-terminal -> CANCELED / SKIPPED
    """

    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    POSTPONED = "POSTPONED"
    CANCELED = "CANCELED"
    SKIPPED = "SKIPPED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELED, TaskStatus.SKIPPED})


class Priority(str, Enum):
    """Task priority. Totally ordered, URGENT highest."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @property
    def front_loads(self) -> bool:
        """Important work takes the earliest viable gap."""
        return self in (Priority.URGENT, Priority.HIGH)


_PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.URGENT: 4,
}


class TaskSource(str, Enum):
    """How the task entered the system."""

    EMAIL = "EMAIL"
    MANUAL = "MANUAL"
    API = "API"


class TaskEventType(str, Enum):
    """Audit trail entry type."""

    CREATED = "CREATED"
    SCHEDULED = "SCHEDULED"
    RESCHEDULED = "RESCHEDULED"
    POSTPONED = "POSTPONED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    SKIPPED = "SKIPPED"


class CalendarProvider(str, Enum):
    """External calendar provider tag."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"
