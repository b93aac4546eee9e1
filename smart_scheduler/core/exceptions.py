"""
Custom exceptions for the scheduling engine.
"""

from typing import Any, Optional


class SchedulerError(Exception):
    """Base exception for smart_scheduler."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(SchedulerError):
    """Resource not found."""

    pass


class ValidationError(SchedulerError):
    """Validation error (bad duration, interval count or date range)."""

    pass


class InfrastructureError(SchedulerError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass


class PersistenceError(InfrastructureError):
    """Storage failure while reading or committing schedule data."""

    pass


class BusinessLogicError(SchedulerError):
    """Business logic constraint violation."""

    pass
