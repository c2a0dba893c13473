"""Engine error types and their mapping to user-facing error responses."""

from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Auction errors
    ERR_INVALID_AUCTION_WINDOW = "ERR_INVALID_AUCTION_WINDOW"
    ERR_BID_TOO_LOW = "ERR_BID_TOO_LOW"
    ERR_BETTER_BID_EXISTS = "ERR_BETTER_BID_EXISTS"
    ERR_BID_NOT_ALLOWED = "ERR_BID_NOT_ALLOWED"
    ERR_AUCTION_CLOSED = "ERR_AUCTION_CLOSED"
    ERR_SETTLEMENT_RACE = "ERR_SETTLEMENT_RACE"

    # Lifecycle errors
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_MISSING_PRECONDITION = "ERR_MISSING_PRECONDITION"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"

    # Lookup errors
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


class EngineError(Exception):
    """Base class for every error the engine reports to its caller."""

    code: str = ErrorCode.ERR_UNKNOWN
    suggestion: str = "Please try again later."
    severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, *, task_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.task_id = task_id


class InvalidAuctionWindowError(EngineError, ValueError):
    """The task has no auction window, so it cannot be priced or bid on."""

    code = ErrorCode.ERR_INVALID_AUCTION_WINDOW
    suggestion = "Only backlog tasks with an auction window accept bids."
    severity = ErrorSeverity.LOW


class BidTooLowError(EngineError, ValueError):
    """The bid does not undercut the current auction value."""

    code = ErrorCode.ERR_BID_TOO_LOW
    suggestion = "Offer a value below the current auction value."
    severity = ErrorSeverity.LOW


class BetterBidExistsError(EngineError, ValueError):
    """Another active bid already ranks at least as well."""

    code = ErrorCode.ERR_BETTER_BID_EXISTS
    suggestion = "Refresh the auction and offer a lower value."
    severity = ErrorSeverity.LOW


class BidNotAllowedError(EngineError, PermissionError):
    """The employee is not eligible to bid on this auction."""

    code = ErrorCode.ERR_BID_NOT_ALLOWED
    suggestion = "Auctions are open to non-admin employees of the task's unit with a sufficient grade."
    severity = ErrorSeverity.LOW


class AuctionClosedError(EngineError, ValueError):
    """The auction was closed before the bid could be accepted."""

    code = ErrorCode.ERR_AUCTION_CLOSED
    suggestion = "The auction has already been settled."
    severity = ErrorSeverity.LOW


class SettlementRaceError(EngineError):
    """Another writer closed the auction first; callers treat this as a no-op."""

    code = ErrorCode.ERR_SETTLEMENT_RACE
    suggestion = "No action needed."
    severity = ErrorSeverity.LOW


class InvalidTransitionError(EngineError, ValueError):
    """The requested status change is not part of the task lifecycle."""

    code = ErrorCode.ERR_INVALID_STATE_TRANSITION
    suggestion = "Check the task status and try again."
    severity = ErrorSeverity.LOW


class MissingGuardPreconditionError(EngineError, ValueError):
    """A precondition of an otherwise legal transition is not met."""

    code = ErrorCode.ERR_MISSING_PRECONDITION
    suggestion = "Provide the missing information and try again."
    severity = ErrorSeverity.LOW


class TransitionPermissionError(EngineError, PermissionError):
    """The acting employee may not perform this transition."""

    code = ErrorCode.ERR_PERMISSION_DENIED
    suggestion = "Ask the executor, the department director or an administrator."
    severity = ErrorSeverity.MEDIUM


class TaskNotFoundError(EngineError, KeyError):
    """The referenced task does not exist."""

    code = ErrorCode.ERR_TASK_NOT_FOUND
    suggestion = "Check the task id."
    severity = ErrorSeverity.LOW

    def __str__(self) -> str:
        return self.message


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, EngineError):
        return ErrorResponse(
            code=exception.code,
            message=exception.message,
            suggestion=exception.suggestion,
            severity=exception.severity,
        )

    if isinstance(exception, PermissionError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="You don't have permission for this action.",
            suggestion="Contact your department director if you think this is an error.",
            severity=ErrorSeverity.MEDIUM,
        )

    # Storage failures surface as RuntimeError from db_client; never echo driver text
    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
