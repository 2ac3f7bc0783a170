"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class PlannerError(Exception):
    """Base exception for autoplan."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(PlannerError):
    """Resource not found (or not owned by the caller)."""

    pass


class InvalidStateError(PlannerError):
    """Operation precondition not met for the current task state."""

    pass


class ValidationError(PlannerError):
    """Validation error."""

    pass


class AuthenticationError(PlannerError):
    """Missing or invalid credentials."""

    pass
