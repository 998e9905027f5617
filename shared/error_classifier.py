"""
Maps raw upstream failures onto the closed error taxonomy.

Both entry points are pure: the same status or exception class always yields
the same error kind.
"""

import asyncio
from typing import Any, Mapping, Optional

import httpx

from .errors import (
    ClassifiedError,
    ErrorKind,
    PackageNotFoundError,
    PackageReadmeError,
    RateLimitError,
)


SERVER_UNAVAILABLE_STATUSES = frozenset({500, 502, 503, 504})

_NETWORK_MARKERS = (
    "enotfound",
    "econnrefused",
    "econnreset",
    "name or service not known",
    "name resolution",
    "nodename nor servname",
    "connection refused",
    "connection reset",
)


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def classify_http_status(
    status_code: int,
    headers: Optional[Mapping[str, str]] = None,
    context: str = "request",
    reason: str = "",
) -> ClassifiedError:
    """Classify a non-2xx HTTP status."""
    if status_code == 404:
        return PackageNotFoundError(context)

    if status_code == 429:
        retry_after = _parse_retry_after((headers or {}).get("retry-after"))
        return RateLimitError(context, retry_after)

    if status_code in SERVER_UNAVAILABLE_STATUSES:
        return ClassifiedError(
            ErrorKind.SERVER_UNAVAILABLE,
            f"Server error ({status_code}) from {context}: {reason or 'unavailable'}",
            status_code=status_code,
        )

    return ClassifiedError(
        ErrorKind.UNKNOWN,
        f"HTTP error {status_code} from {context}: {reason or 'unexpected status'}",
        code="HTTP_ERROR",
        status_code=status_code,
    )


def classify_response(response: httpx.Response, context: str) -> ClassifiedError:
    """Classify a failed httpx response."""
    return classify_http_status(
        response.status_code,
        response.headers,
        context,
        response.reason_phrase,
    )


def classify_exception(error: Any, context: str = "operation") -> ClassifiedError:
    """Classify a caught exception (or any raised value)."""
    if isinstance(error, ClassifiedError):
        return error

    if not isinstance(error, BaseException):
        return ClassifiedError(
            ErrorKind.UNKNOWN,
            f"Unknown error in {context}: {error!s}",
            cause=error,
        )

    if isinstance(error, PackageReadmeError):
        return ClassifiedError(
            ErrorKind.UNKNOWN,
            error.message,
            code=error.code,
            status_code=error.status_code,
            cause=error,
            details=error.details,
        )

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ClassifiedError(ErrorKind.TIMEOUT, f"Request timeout in {context}", cause=error)

    if isinstance(error, httpx.HTTPStatusError):
        classified = classify_response(error.response, context)
        classified.__cause__ = error
        return classified

    message = str(error).lower()
    if isinstance(error, (httpx.NetworkError, ConnectionError)) or any(
        marker in message for marker in _NETWORK_MARKERS
    ):
        return ClassifiedError(ErrorKind.NETWORK, f"Connection failed in {context}", cause=error)

    if "timeout" in message or "timed out" in message:
        return ClassifiedError(ErrorKind.TIMEOUT, f"Request timeout in {context}", cause=error)

    return ClassifiedError(
        ErrorKind.UNKNOWN,
        f"Unexpected error in {context}: {error}",
        cause=error,
    )
