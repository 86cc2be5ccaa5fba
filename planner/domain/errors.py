"""
Typed domain errors for the weekly planner.

Callers can tell validation problems, vanished entities and remote failures
apart and map each one to the right HTTP status or user notification.
"""

from typing import Optional


class DomainError(Exception):
    """Base class for all domain-specific errors."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class PlannerValidationError(DomainError):
    """Input rejected before any write is attempted."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidTaskContent(PlannerValidationError):
    """Task content is empty or whitespace only."""

    def __init__(self) -> None:
        super().__init__("Task content must not be empty", field="content")


class InvalidWeekId(PlannerValidationError):
    """Week id is not a valid ``YYYY-Www`` ISO week."""

    def __init__(self, week_id: str) -> None:
        self.week_id = week_id
        super().__init__(f"Invalid week id: {week_id!r}", field="week_id")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class TaskNotFound(DomainError):
    """Task with the given id does not exist for the caller."""

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


# ---------------------------------------------------------------------------
# Remote calls and storage
# ---------------------------------------------------------------------------


class RemoteCallFailed(DomainError):
    """The remote data API returned an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class UnsupportedImage(DomainError):
    """Uploaded bytes are not an accepted image, or exceed the size cap."""


class StorageUploadFailure(DomainError):
    """Blob storage rejected or failed to persist an upload."""
