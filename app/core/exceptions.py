"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
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
    """Malformed or out-of-policy input (business hours, past time, missing field)."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class UnavailableException(AppException):
    """Practitioner exists but cannot take bookings."""

    def __init__(self, message: str = "Practitioner is not available"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Requested time overlaps an existing booking."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class IllegalTransitionException(AppException):
    """Appointment status change not permitted from the current state."""

    def __init__(self, current_status: str, requested_status: str):
        """Initialize with 400 status code."""
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot change appointment status from '{current_status}' to '{requested_status}'",
            status_code=400,
        )
