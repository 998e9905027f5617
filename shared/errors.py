"""
Shared error handling for the NuGet README Access service.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel

from .logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class PackageReadmeError(Exception):
    """Base exception for the README access service."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ErrorKind(str, Enum):
    """Closed taxonomy of upstream failure kinds."""
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_UNAVAILABLE = "server_unavailable"
    TIMEOUT = "timeout"
    NETWORK = "network"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVER_UNAVAILABLE,
    ErrorKind.TIMEOUT,
    ErrorKind.NETWORK,
})

ERROR_CODES = {
    ErrorKind.NOT_FOUND: "PACKAGE_NOT_FOUND",
    ErrorKind.RATE_LIMITED: "RATE_LIMIT_EXCEEDED",
    ErrorKind.SERVER_UNAVAILABLE: "SERVER_UNAVAILABLE",
    ErrorKind.TIMEOUT: "TIMEOUT",
    ErrorKind.NETWORK: "NETWORK_ERROR",
    ErrorKind.VALIDATION: "VALIDATION_ERROR",
    ErrorKind.UNKNOWN: "UNKNOWN_ERROR",
}


class ClassifiedError(PackageReadmeError):
    """A failure mapped onto the closed error taxonomy.

    ``retryable`` is derived from ``kind`` and never changes after creation.
    ``cause`` keeps the original exception (or raw value) for diagnostics.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after_seconds: Optional[int] = None,
        cause: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if status_code is not None:
            details.setdefault("status_code", status_code)
        if retry_after_seconds is not None:
            details.setdefault("retry_after", retry_after_seconds)
        super().__init__(code or ERROR_CODES[kind], message, details, status_code)
        self._kind = kind
        self._retry_after_seconds = retry_after_seconds
        self._cause = cause

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def retryable(self) -> bool:
        return self._kind in RETRYABLE_KINDS

    @property
    def retry_after_seconds(self) -> Optional[int]:
        return self._retry_after_seconds

    @property
    def cause(self) -> Any:
        return self._cause


class ValidationError(ClassifiedError):
    """Validation-related errors.

    The stable ``code`` is always VALIDATION_ERROR; ``reason`` carries the
    specific check that failed (INVALID_PACKAGE_NAME, INVALID_LIMIT, ...).
    """

    def __init__(self, message: str = "Validation failed", reason: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if reason:
            details.setdefault("reason", reason)
        super().__init__(ErrorKind.VALIDATION, message, details=details)
        self.reason = reason


class PackageNotFoundError(ClassifiedError):
    """Package or package resource not found upstream."""

    def __init__(self, context: str, cause: Any = None):
        super().__init__(ErrorKind.NOT_FOUND, f"Not found: {context}", status_code=404, cause=cause)


class RateLimitError(ClassifiedError):
    """Rate limiting errors."""

    def __init__(self, context: str, retry_after_seconds: Optional[int] = None):
        super().__init__(
            ErrorKind.RATE_LIMITED,
            f"Rate limit exceeded for {context}",
            status_code=429,
            retry_after_seconds=retry_after_seconds,
        )
