"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and optional details."""
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ValidationException(AppException):
    """Booking request is missing or has invalid fields."""

    def __init__(self, message: str = "Validation error", fields: list[str] | None = None):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422, details={"fields": fields} if fields else None)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details=details)


class SlotUnavailableException(ConflictException):
    """The requested slot was claimed after availability was shown."""

    def __init__(self, available_slots: list[str] | None = None):
        """Initialize with the refreshed list of free slots for the same day."""
        super().__init__(
            "This time slot is no longer available. Please select another time.",
            details={"available_slots": available_slots or []},
        )
        self.available_slots = available_slots or []


class TransitionException(ConflictException):
    """Requested status change is not permitted."""

    def __init__(self, current: str, requested: str, reason: str | None = None):
        """Initialize with the disallowed transition."""
        message = f"Cannot change appointment status from '{current}' to '{requested}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message, details={"current_status": current, "requested_status": requested}
        )
        self.current = current
        self.requested = requested


class StorageException(AppException):
    """Appointment store unreachable or failed."""

    def __init__(self, message: str = "Appointment storage is temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
