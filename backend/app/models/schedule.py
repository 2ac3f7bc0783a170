"""
Schedule model definitions.

Request/response schemas for the scheduling engine and re-planning operations.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.task import Task


class WorkWindow(BaseModel):
    """Effective [start, end) of one working day."""

    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    @property
    def minutes(self) -> float:
        return max(0.0, (self.end - self.start).total_seconds() / 60)


class BatchScheduleResult(BaseModel):
    """Outcome of scheduling every pending task of a user."""

    scheduled: int = 0
    failed: int = 0


class ScheduleTaskResponse(BaseModel):
    task: Task
    scheduled: bool = Field(..., description="False means it needs manual scheduling")


class RescheduleOutcome(BaseModel):
    """A task cleared back to PENDING and offered to the engine again."""

    task: Task
    rescheduled: bool


class MinutesRequest(BaseModel):
    minutes: int = Field(..., ge=1, le=24 * 60)


class SnoozeRequest(MinutesRequest):
    minutes: int = Field(5, ge=1, le=24 * 60)


class ExtendRequest(MinutesRequest):
    minutes: int = Field(15, ge=1, le=24 * 60)


class PostponeRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class SwapRequest(BaseModel):
    task_id_a: UUID
    task_id_b: UUID


class SwapResponse(BaseModel):
    task_a: Task
    task_b: Task


class ManualRescheduleRequest(BaseModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_order(self):
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class WorkingHoursRequest(BaseModel):
    workday_start_min: int = Field(..., ge=0, lt=24 * 60)
    workday_end_min: int = Field(..., ge=0, lt=24 * 60)
    reschedule: bool = Field(True, description="Re-plan pending and scheduled tasks")


class WorkingHoursResult(BaseModel):
    workday_start_min: int
    workday_end_min: int
    reschedule_ran: bool
    rescheduled: int = 0
    failed: int = 0


class DailyReportSummary(BaseModel):
    total: int = 0
    completed: int = 0
    scheduled: int = 0
    postponed: int = 0
    skipped: int = 0
    canceled: int = 0
    pending: int = 0


class DailyReport(BaseModel):
    date: str
    summary: DailyReportSummary
    suggestions: list[str] = Field(default_factory=list)
