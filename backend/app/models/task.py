"""
Task model definitions.

Tasks are the core entity: a unit of work that the scheduling engine turns
into a concrete [scheduled_start, scheduled_end) interval.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.enums import CalendarProvider, Priority, TaskSource, TaskStatus

MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 480


class TaskBase(BaseModel):
    """Base task fields shared across create/read."""

    title: str = Field(..., min_length=1, max_length=500, description="Task title")
    description: Optional[str] = Field(None, max_length=5000, description="Task details")
    priority: Priority = Field(Priority.MEDIUM, description="LOW / MEDIUM / HIGH / URGENT")
    estimated_duration_minutes: int = Field(
        30, ge=1, description="Estimated duration in minutes"
    )


class TaskCreate(TaskBase):
    """Schema for creating a new task."""

    estimated_duration_minutes: int = Field(
        30, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES
    )
    source: TaskSource = Field(TaskSource.MANUAL, description="EMAIL / MANUAL / API")


class TaskPatch(BaseModel):
    """User-editable fields of an existing task."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    priority: Optional[Priority] = None
    estimated_duration_minutes: Optional[int] = Field(
        None, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES
    )


class TaskUpdate(BaseModel):
    """
    Internal update applied by services.

    Only fields explicitly set are written, so passing ``None`` clears a
    nullable column (e.g. ``scheduled_start=None``).
    """

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    priority: Optional[Priority] = None
    estimated_duration_minutes: Optional[int] = Field(None, ge=1)
    status: Optional[TaskStatus] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    external_event_id: Optional[str] = Field(None, max_length=255)
    external_event_provider: Optional[CalendarProvider] = None

    @classmethod
    def clear_schedule(cls, **fields) -> "TaskUpdate":
        """Update that drops the interval and any external event link."""
        return cls(
            scheduled_start=None,
            scheduled_end=None,
            external_event_id=None,
            external_event_provider=None,
            **fields,
        )


class Task(TaskBase):
    """Complete task model with all fields."""

    id: UUID
    user_id: str = Field(..., description="Owner user ID")
    status: TaskStatus = Field(TaskStatus.PENDING)
    source: TaskSource = Field(TaskSource.MANUAL)
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    external_event_id: Optional[str] = Field(None, description="Linked calendar event ID")
    external_event_provider: Optional[CalendarProvider] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @model_validator(mode="after")
    def validate_interval(self):
        """Scheduled bounds come as a pair and the end follows the start."""
        if (self.scheduled_start is None) != (self.scheduled_end is None):
            raise ValueError("scheduled_start and scheduled_end must both be set or both be empty")
        if self.scheduled_start and self.scheduled_end <= self.scheduled_start:
            raise ValueError("scheduled_end must be after scheduled_start")
        return self

    @property
    def has_interval(self) -> bool:
        return self.scheduled_start is not None and self.scheduled_end is not None

    @property
    def scheduled_minutes(self) -> Optional[int]:
        if not self.has_interval:
            return None
        return int((self.scheduled_end - self.scheduled_start).total_seconds() // 60)
