"""Custom exception hierarchy for the weekly cycle application."""

from __future__ import annotations


class ApplicationError(Exception):
    """Base exception for weekly cycle failures."""


class NotActiveError(ApplicationError):
    """Raised when an operation that needs a running loop is invoked while it is stopped."""


class DuplicateWindowError(ApplicationError):
    """Raised by a week store when a window's number or start date already exists."""


class DuplicateReportError(ApplicationError):
    """Raised by a report store when the student already has a report for that week."""


class StorageError(ApplicationError):
    """Raised when the persistence layer fails."""


class WeekNotFoundError(ApplicationError):
    """Raised when a requested week number has no persisted window."""


class StudentNotFoundError(ApplicationError):
    """Raised when a requested student does not exist."""


class AnchorRequiredError(ApplicationError):
    """Raised when the loop is started without a start date and no Week 1 exists to anchor on."""


__all__ = [
    "ApplicationError",
    "NotActiveError",
    "DuplicateWindowError",
    "DuplicateReportError",
    "StorageError",
    "WeekNotFoundError",
    "StudentNotFoundError",
    "AnchorRequiredError",
]
