"""Typed errors raised by the booking core.

The transport layer maps each class to a status code; the core itself never
logs or swallows them.
"""


class BookingError(Exception):
    """Base class for every error the booking core reports."""

    kind = "booking_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Missing or malformed input."""

    kind = "validation_error"


class NotFoundError(BookingError):
    """A referenced operator, reservation or ticket does not exist."""

    kind = "not_found"


class ConflictError(BookingError):
    """The operator or the car already holds an overlapping booking."""

    kind = "conflict"


class InvalidStateError(BookingError):
    """The requested lifecycle transition is not allowed."""

    kind = "invalid_state"


class StorageError(BookingError):
    """The repository failed or reported zero effect. Safe to retry."""

    kind = "storage_error"
