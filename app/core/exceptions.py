"""
Custom Exception Hierarchy

Structured exceptions for the order acceptance pipeline. Each one carries an
error code and the HTTP status it would map to as a plain API error; the push
endpoint does not use those statuses directly but goes through the response
mapper, which decides acknowledge vs. redeliver.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"

    # Envelope / event errors (2xxx)
    MALFORMED_ENVELOPE = "ERR_2001"
    UNSUPPORTED_EVENT_TYPE = "ERR_2002"
    DUPLICATE_EVENT = "ERR_2003"

    # Customer errors (3xxx)
    UNKNOWN_CUSTOMER = "ERR_3001"

    # Storage errors (4xxx)
    COMMIT_CONFLICT = "ERR_4001"
    COMMIT_TIMEOUT = "ERR_4002"


class AppException(Exception):
    """Base exception for all application errors"""

    retriable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class EventException(AppException):
    """Base exception for errors tied to one inbound event"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        event_id: str | None = None,
        status_code: int = 400,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        self.event_id = event_id
        if event_id:
            self.details["event_id"] = event_id


class MalformedEnvelopeError(EventException):
    """Raised when the push envelope cannot be decoded into an order event"""

    def __init__(self, reason: str, field: str | None = None, event_id: str | None = None):
        super().__init__(
            message=f"Malformed envelope: {reason}",
            error_code=ErrorCode.MALFORMED_ENVELOPE,
            event_id=event_id,
        )
        self.reason = reason
        if field:
            self.details["field"] = field


class UnsupportedEventTypeError(EventException):
    """Raised when the envelope is well formed but carries an event type we do not handle"""

    def __init__(self, event_id: str, event_type: str):
        super().__init__(
            message=f"Unsupported event type: {event_type}",
            error_code=ErrorCode.UNSUPPORTED_EVENT_TYPE,
            event_id=event_id,
            details={"event_type": event_type},
        )
        self.event_type = event_type


class DuplicateEventError(EventException):
    """Raised when the processed-event marker for this event id already exists"""

    def __init__(self, event_id: str):
        super().__init__(
            message=f"Event already processed: {event_id}",
            error_code=ErrorCode.DUPLICATE_EVENT,
            event_id=event_id,
            status_code=409,
        )


class UnknownCustomerError(EventException):
    """Raised when the order references a customer with no account"""

    def __init__(self, customer_id: int, event_id: str | None = None):
        super().__init__(
            message=f"Customer not found: {customer_id}",
            error_code=ErrorCode.UNKNOWN_CUSTOMER,
            event_id=event_id,
            status_code=404,
            details={"customer_id": customer_id},
        )
        self.customer_id = customer_id


class CommitConflictError(EventException):
    """Raised when the transaction aborted for a reason a later attempt may not hit"""

    retriable = True

    def __init__(
        self,
        event_id: str,
        reason: str,
        error_code: ErrorCode = ErrorCode.COMMIT_CONFLICT,
    ):
        super().__init__(
            message=f"Commit aborted for event {event_id}: {reason}",
            error_code=error_code,
            event_id=event_id,
            status_code=503,
            details={"reason": reason},
        )
        self.reason = reason


class CommitTimeoutError(CommitConflictError):
    """Raised when a commit attempt exceeds its timeout"""

    def __init__(self, event_id: str, timeout_seconds: float):
        super().__init__(
            event_id=event_id,
            reason=f"commit exceeded {timeout_seconds}s",
            error_code=ErrorCode.COMMIT_TIMEOUT,
        )
        self.details["timeout_seconds"] = timeout_seconds
