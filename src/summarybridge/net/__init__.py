"""Network primitives: deadline-bound requests and the error taxonomy."""

from .errors import (
    Cancelled,
    ErrorCode,
    InvalidVatNumber,
    MissingJobId,
    NetworkError,
    NoFileSelected,
    NoIdentifierReturned,
    NoResultProduced,
    NotReadyYet,
    ServerError,
    SummaryBridgeError,
    TimedOut,
    TransientNetworkError,
    ValidationError,
)
from .request import send_with_deadline

__all__ = [
    "Cancelled",
    "ErrorCode",
    "InvalidVatNumber",
    "MissingJobId",
    "NetworkError",
    "NoFileSelected",
    "NoIdentifierReturned",
    "NoResultProduced",
    "NotReadyYet",
    "ServerError",
    "SummaryBridgeError",
    "TimedOut",
    "TransientNetworkError",
    "ValidationError",
    "send_with_deadline",
]
