"""
Scheduling error taxonomy

Engine methods raise one of these instead of returning partial records.
Callers branch on ``error.kind``; the message is for humans only.
"""
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    INVALID_INPUT = "invalid_input"


class SchedulingError(Exception):
    """Base class for every failure raised by the queue and appointment engines."""

    kind = ErrorKind.INVALID_STATE
    default_code = "SCHEDULING_ERROR"

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self):
        return {
            "code": self.code,
            "kind": self.kind.value,
            "message": self.message,
        }


class NotFoundError(SchedulingError):
    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"


class InvalidStateError(SchedulingError):
    kind = ErrorKind.INVALID_STATE
    default_code = "INVALID_STATUS"


class UnauthorizedError(SchedulingError):
    kind = ErrorKind.UNAUTHORIZED
    default_code = "FORBIDDEN"


class ConflictError(SchedulingError):
    kind = ErrorKind.CONFLICT
    default_code = "CONFLICT"


class InvalidInputError(SchedulingError):
    kind = ErrorKind.INVALID_INPUT
    default_code = "INVALID_DATA"


class QueueClosedError(ConflictError):
    default_code = "QUEUE_CLOSED"


class AppointmentConflictError(ConflictError):
    default_code = "TIME_SLOT_CONFLICT"


class CheckInTooEarlyError(InvalidStateError):
    default_code = "CHECK_IN_TOO_EARLY"


class CheckInWindowPassedError(InvalidStateError):
    default_code = "CHECK_IN_WINDOW_PASSED"
