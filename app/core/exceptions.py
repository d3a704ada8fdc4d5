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
        self.details = details
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class InvalidTransitionException(AppException):
    """Requested status change is not allowed from the current status."""

    def __init__(self, current_status: str, requested_action: str):
        """Initialize with 409 status code naming both states."""
        self.current_status = current_status
        self.requested_action = requested_action
        super().__init__(
            f"Cannot {requested_action} an appointment with status '{current_status}'",
            status_code=409,
            details={
                "current_status": current_status,
                "requested_action": requested_action,
            },
        )


class ConcurrentModificationException(AppException):
    """Appointment changed between read and write; safe to retry."""

    def __init__(self, message: str = "Appointment was modified concurrently, please retry"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details={"retryable": True})


class InvalidQueueStateException(AppException):
    """Queue mutation referenced entries that are not currently active."""

    def __init__(self, message: str = "Invalid queue state", invalid_ids: list[str] | None = None):
        """Initialize with 400 status code."""
        self.invalid_ids = invalid_ids or []
        super().__init__(message, status_code=400, details={"invalid_ids": self.invalid_ids})


class AllocationUnavailableException(AppException):
    """Ticket/position counter store could not be reached."""

    def __init__(self, message: str = "Queue number allocation is temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503, details={"retryable": True})
