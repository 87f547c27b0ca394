"""
Error kinds returned by the booking core.

Every failure carries a stable ``kind`` plus a human-readable message, so
callers can map it to their own protocol without parsing text.
"""


class BookingError(Exception):
    """Base exception for booking and schedule operations."""

    kind = "internal"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Required fields missing or malformed."""

    kind = "validation_error"


class NotFoundError(BookingError):
    """Barber, schedule or booking does not exist in the required state."""

    kind = "not_found"


class ConflictError(BookingError):
    """Target slot already reserved, or a uniqueness race was lost."""

    kind = "conflict"


class TransientError(BookingError):
    """Lock timeout or connection failure. Safe to retry."""

    kind = "transient"
    retryable = True


class InternalError(BookingError):
    """Unexpected persistence failure."""

    kind = "internal"
