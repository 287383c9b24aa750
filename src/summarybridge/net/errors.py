"""Error taxonomy shared by submission, polling, and chat.

Every failure the client can observe maps onto one of these classes so that
callers can decide between retrying, surfacing a message, or silently
abandoning the operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for machine-readable error codes."""

    VALIDATION = "validation_error"
    NO_FILE_SELECTED = "no_file_selected"
    INVALID_VAT_NUMBER = "invalid_vat_number"
    MISSING_JOB_ID = "missing_job_id"
    NETWORK = "network_error"
    TIMEOUT = "timeout"
    SERVER = "server_error"
    NOT_READY = "not_ready"
    NO_IDENTIFIER = "no_identifier_returned"
    NO_RESULT = "no_result_produced"
    CANCELLED = "cancelled"


@dataclass
class SummaryBridgeError(Exception):
    """Base exception for all client errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    retryable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return self.message


# -----------------------------------------------------------------------------
# Local validation failures (never retried)
# -----------------------------------------------------------------------------

@dataclass
class ValidationError(SummaryBridgeError):
    error_code: str = field(default=ErrorCode.VALIDATION)
    message: str = field(default="Invalid input")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class NoFileSelected(ValidationError):
    error_code: str = field(default=ErrorCode.NO_FILE_SELECTED)
    message: str = field(default="No file selected")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class InvalidVatNumber(ValidationError):
    error_code: str = field(default=ErrorCode.INVALID_VAT_NUMBER)
    message: str = field(default="Invalid VAT number")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class MissingJobId(ValidationError):
    error_code: str = field(default=ErrorCode.MISSING_JOB_ID)
    message: str = field(default="No job identifier available")
    details: dict[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Transport failures
# -----------------------------------------------------------------------------

@dataclass
class TransientNetworkError(SummaryBridgeError):
    """The request never produced a response; retried within the owner's budget."""

    error_code: str = field(default=ErrorCode.NETWORK)
    message: str = field(default="Network request failed")
    details: dict[str, Any] = field(default_factory=dict)

    retryable: ClassVar[bool] = True


NetworkError = TransientNetworkError


@dataclass
class TimedOut(TransientNetworkError):
    error_code: str = field(default=ErrorCode.TIMEOUT)
    message: str = field(default="Request timed out")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class Cancelled(SummaryBridgeError):
    """The operation was superseded or torn down; never shown to the user."""

    error_code: str = field(default=ErrorCode.CANCELLED)
    message: str = field(default="Request aborted by external signal")
    details: dict[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Remote outcomes
# -----------------------------------------------------------------------------

@dataclass
class ServerError(SummaryBridgeError):
    """Non-success HTTP status outside the operation's "not ready" set."""

    error_code: str = field(default=ErrorCode.SERVER)
    message: str = field(default="")
    details: dict[str, Any] = field(default_factory=dict)
    status: int = 0

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Server error: {self.status}"
        self.details.setdefault("status", self.status)
        super().__post_init__()


@dataclass
class NotReadyYet(SummaryBridgeError):
    error_code: str = field(default=ErrorCode.NOT_READY)
    message: str = field(default="Result not ready yet")
    details: dict[str, Any] = field(default_factory=dict)

    retryable: ClassVar[bool] = True


@dataclass
class NoIdentifierReturned(SummaryBridgeError):
    """The upload succeeded but its body did not contain a job identifier."""

    error_code: str = field(default=ErrorCode.NO_IDENTIFIER)
    message: str = field(default="Upload succeeded but could not extract a numeric ID.")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class NoResultProduced(SummaryBridgeError):
    error_code: str = field(default=ErrorCode.NO_RESULT)
    message: str = field(default="No summary produced after multiple attempts.")
    details: dict[str, Any] = field(default_factory=dict)
