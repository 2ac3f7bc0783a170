"""
User account models: identity, timezone and working hours.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

MINUTES_PER_DAY = 24 * 60


class WorkingHours(BaseModel):
    """Daily [workday_start_min, workday_end_min) window, minutes from midnight."""

    workday_start_min: int = Field(..., ge=0, lt=MINUTES_PER_DAY)
    workday_end_min: int = Field(..., ge=0, lt=MINUTES_PER_DAY)

    @model_validator(mode="after")
    def validate_order(self):
        if self.workday_end_min <= self.workday_start_min:
            raise ValueError("workday_end_min must be greater than workday_start_min")
        return self


class UserCreate(BaseModel):
    """Create a user account."""

    email: str = Field(..., min_length=3, max_length=255)
    display_name: Optional[str] = Field(None, max_length=255)
    timezone: str = Field(default="UTC", max_length=50, description="IANA timezone (e.g., Europe/Berlin)")
    workday_start_min: int = Field(540, ge=0, lt=MINUTES_PER_DAY)
    workday_end_min: int = Field(1080, ge=0, lt=MINUTES_PER_DAY)

    @model_validator(mode="after")
    def validate_order(self):
        if self.workday_end_min <= self.workday_start_min:
            raise ValueError("workday_end_min must be greater than workday_start_min")
        return self


class UserAccount(BaseModel):
    """User account stored in the database."""

    id: str
    email: str
    display_name: Optional[str] = None
    timezone: str = "UTC"
    workday_start_min: int = 540
    workday_end_min: int = 1080
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @property
    def working_hours(self) -> WorkingHours:
        return WorkingHours(
            workday_start_min=self.workday_start_min,
            workday_end_min=self.workday_end_min,
        )
