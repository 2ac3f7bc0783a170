"""
Task repository interface.

Defines the contract for task and task-event persistence.
Implementations: SQLite
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from app.models.enums import TaskStatus
from app.models.task import Task, TaskCreate, TaskUpdate
from app.models.task_event import TaskEvent, TaskEventCreate


class ITaskRepository(ABC):
    """Abstract interface for task persistence."""

    @abstractmethod
    async def create(self, user_id: str, task: TaskCreate) -> Task:
        """
        Create a new PENDING task and append its CREATED event.

        Args:
            user_id: Owner user ID
            task: Task creation data

        Returns:
            Created task with generated ID and timestamps
        """
        pass

    @abstractmethod
    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        """
        Get a task by ID.

        Returns:
            Task if found, None otherwise
        """
        pass

    @abstractmethod
    async def list(
        self,
        user_id: str,
        status: Optional[TaskStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Task]:
        """List tasks, newest first."""
        pass

    @abstractmethod
    async def list_by_status(
        self, user_id: str, statuses: Iterable[TaskStatus]
    ) -> list[Task]:
        """List tasks in any of the given statuses, oldest first."""
        pass

    @abstractmethod
    async def list_scheduled_in_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Task]:
        """
        SCHEDULED tasks whose interval overlaps [start, end).

        Returns:
            Tasks ordered by scheduled_start ascending
        """
        pass

    @abstractmethod
    async def list_created_in_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Task]:
        """Tasks created within [start, end)."""
        pass

    @abstractmethod
    async def update(
        self,
        user_id: str,
        task_id: UUID,
        update: TaskUpdate,
        event: Optional[TaskEventCreate] = None,
        expected_statuses: Optional[Iterable[TaskStatus]] = None,
    ) -> Task:
        """
        Update a task, optionally appending an event in the same transaction.

        Args:
            user_id: Owner user ID
            task_id: Task ID to update
            update: Fields to update (explicitly set fields only)
            event: Audit event written atomically with the update
            expected_statuses: Apply only if the stored status is one of these

        Returns:
            Updated task

        Raises:
            NotFoundError: If task not found
            InvalidStateError: If the stored status is not expected
        """
        pass

    @abstractmethod
    async def swap_intervals(
        self, user_id: str, task_id_a: UUID, task_id_b: UUID, reason: str
    ) -> tuple[Task, Task]:
        """
        Exchange the scheduled intervals of two tasks atomically.

        Raises:
            NotFoundError: If either task is missing
            InvalidStateError: If either task has no interval
        """
        pass

    @abstractmethod
    async def reset_schedules(
        self, user_id: str, statuses: Iterable[TaskStatus]
    ) -> int:
        """
        Move tasks in the given statuses back to PENDING with no interval.

        Returns:
            Number of tasks reset
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, task_id: UUID) -> bool:
        """
        Delete a task and its events.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def append_event(
        self, user_id: str, task_id: UUID, event: TaskEventCreate
    ) -> TaskEvent:
        """Append an audit event to a task."""
        pass

    @abstractmethod
    async def list_events(self, user_id: str, task_id: UUID) -> list[TaskEvent]:
        """Events of a task in the order they were written."""
        pass
