"""API routers."""

from app.api import (
    calendar,
    reports,
    schedule,
    tasks,
    users,
)

__all__ = [
    "tasks",
    "schedule",
    "users",
    "calendar",
    "reports",
]
