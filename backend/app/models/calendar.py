"""
Calendar model definitions.

Free/busy intervals, linked provider accounts and the result type returned
from every calendar-provider call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Literal, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import CalendarProvider

T = TypeVar("T")

ProviderErrorKind = Literal["not_linked", "auth", "timeout", "network", "api"]


class FreeBusyInterval(BaseModel):
    """Half-open [start, end) time range."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_order(self):
        if self.end <= self.start:
            raise ValueError("interval end must be after start")
        return self

    @property
    def minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60


class CalendarAccount(BaseModel):
    """OAuth tokens of a linked external calendar."""

    id: UUID
    user_id: str
    provider: CalendarProvider
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CalendarAccountUpsert(BaseModel):
    """Link (or relink) a calendar provider."""

    provider: CalendarProvider
    access_token: Optional[str] = Field(None, max_length=4096)
    refresh_token: Optional[str] = Field(None, max_length=4096)
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProviderError:
    """Why a provider call produced no data."""

    provider: str
    kind: ProviderErrorKind
    message: str


@dataclass(frozen=True)
class ProviderResult(Generic[T]):
    """Value-or-error returned across the calendar-provider boundary."""

    value: Optional[T] = None
    error: Optional[ProviderError] = None

    @classmethod
    def success(cls, value: T) -> "ProviderResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, provider: str, kind: ProviderErrorKind, message: str) -> "ProviderResult[T]":
        return cls(error=ProviderError(provider=provider, kind=kind, message=message))

    @property
    def ok(self) -> bool:
        return self.error is None


class AvailableSlot(BaseModel):
    start: datetime
    end: datetime
    duration_minutes: int


class SlotCheckResponse(BaseModel):
    """Whether a proposed slot is clear of external busy time."""

    start: datetime
    end: datetime
    available: bool
    conflicts: list[FreeBusyInterval] = Field(default_factory=list)


class AvailabilityResponse(BaseModel):
    """Busy and free time of a user's working day."""

    date: str
    timezone: str
    work_start: datetime
    work_end: datetime
    busy: list[FreeBusyInterval] = Field(default_factory=list)
    available: list[AvailableSlot] = Field(default_factory=list)
    total_available_minutes: int = 0
