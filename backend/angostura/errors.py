"""Domain error codes for the booking service."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_NOT_BOOKABLE = "EVENT_NOT_BOOKABLE"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    INVALID_SEAT_COUNT = "INVALID_SEAT_COUNT"
    INSUFFICIENT_SEATS = "INSUFFICIENT_SEATS"
    STORAGE_ERROR = "STORAGE_ERROR"
    NOTIFICATION_ERROR = "NOTIFICATION_ERROR"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class FieldValidationError(DomainError):
    """Raised when a form fails validation; `errors` holds one message per field."""

    def __init__(self, errors) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_FAILED,
            message="Please correct the highlighted fields",
        )
        self.errors = errors


class NotAuthenticated(DomainError):
    def __init__(self, message: str = "Please log in to continue") -> None:
        super().__init__(code=ErrorCode.NOT_AUTHENTICATED, message=message)


class Forbidden(DomainError):
    def __init__(self, message: str = "You are not allowed to do this") -> None:
        super().__init__(code=ErrorCode.FORBIDDEN, message=message)


class EventNotFound(DomainError):
    """Raised when an event is not found."""

    def __init__(self, event_id: int) -> None:
        super().__init__(code=ErrorCode.EVENT_NOT_FOUND, message="Event not found")
        self.event_id = event_id


class EventNotBookable(DomainError):
    """Raised when an event is cancelled or marked full."""

    def __init__(self, status: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_BOOKABLE,
            message="This event is not open for registration",
        )
        self.status = status


class AlreadyRegistered(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_REGISTERED,
            message="You are already registered for this event",
        )


class InvalidSeatCount(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_SEAT_COUNT,
            message="You can book between 1 and 4 seats",
        )


class InsufficientSeats(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INSUFFICIENT_SEATS,
            message="Not enough seats available",
        )


class StorageError(DomainError):
    """Unexpected failure from the database or auth store."""

    def __init__(self, message: str = "Something went wrong. Please try again.") -> None:
        super().__init__(code=ErrorCode.STORAGE_ERROR, message=message)


class NotificationError(DomainError):
    """Confirmation email could not be sent. Never reverses a booking."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            code=ErrorCode.NOTIFICATION_ERROR,
            message="Booking confirmed, email may be delayed",
        )
        self.detail = detail
