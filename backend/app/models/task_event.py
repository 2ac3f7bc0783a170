"""
Task event model definitions.

Append-only audit records of task state transitions.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.enums import TaskEventType


class TaskEventCreate(BaseModel):
    """An audit entry to append alongside a task mutation."""

    type: TaskEventType
    reason: Optional[str] = Field(None, max_length=500)


class TaskEvent(BaseModel):
    """A recorded task state transition."""

    id: UUID
    task_id: UUID
    user_id: str
    type: TaskEventType
    reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
