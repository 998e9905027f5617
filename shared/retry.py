"""
Retry mechanism for resilient upstream operations.

Failures are classified before any retry decision: permanent failures
(not found, validation, unknown) propagate immediately, transient ones are
retried with exponential backoff or the server-declared ``retry-after``.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shared.error_classifier import classify_exception
from shared.errors import ClassifiedError, ErrorKind
from shared.logging import get_logger

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]

logger = get_logger("readme.retry")


class RetryConfig:
    """Configuration for retry behavior.

    ``max_retries`` counts retries after the initial attempt, so an operation
    runs at most ``max_retries + 1`` times.
    """

    def __init__(self, max_retries: int = 3, base_delay_ms: int = 1000):
        self.max_retries = max(0, max_retries)
        self.base_delay_ms = max(0, base_delay_ms)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str = "operation",
        sleep: Optional[Sleep] = None,
    ) -> T:
        """Run ``operation`` under this policy."""
        return await with_retry(operation, self.max_retries, self.base_delay_ms, context, sleep=sleep)

    def __repr__(self) -> str:
        return f"RetryConfig(max_retries={self.max_retries}, base_delay_ms={self.base_delay_ms})"


NO_RETRY = RetryConfig(max_retries=0, base_delay_ms=0)


def calculate_delay_ms(error: ClassifiedError, attempt: int, base_delay_ms: int) -> int:
    """Delay before the retry following zero-based ``attempt``."""
    if error.kind is ErrorKind.RATE_LIMITED and error.retry_after_seconds is not None:
        return error.retry_after_seconds * 1000
    return base_delay_ms * (2 ** attempt)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay_ms: int = 1000,
    context: str = "operation",
    *,
    sleep: Optional[Sleep] = None,
) -> T:
    """Run ``operation`` with classified retries.

    Raises the last ``ClassifiedError`` once attempts are exhausted, or the
    first non-retryable one straight away.
    """
    sleep = sleep or asyncio.sleep
    last_error: Optional[ClassifiedError] = None
    # Single-attempt callers treat failure as an expected outcome
    log_failure = logger.warning if max_retries == 0 else logger.error

    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except Exception as exc:
            error = classify_exception(exc, context)

        last_error = error

        if not error.retryable:
            if error.kind is ErrorKind.UNKNOWN:
                log_failure(
                    "Operation failed with unclassified error",
                    context=context,
                    code=error.code,
                    error=error.message,
                    exc_info=error.cause if isinstance(error.cause, BaseException) else None,
                )
            raise error

        if attempt == max_retries:
            log_failure(
                "All retry attempts exhausted",
                context=context,
                attempts=max_retries + 1,
                kind=error.kind.value,
                error=error.message,
            )
            break

        delay_ms = calculate_delay_ms(error, attempt, base_delay_ms)
        logger.warning(
            "Retry attempt failed, waiting before next attempt",
            context=context,
            attempt=attempt + 1,
            max_attempts=max_retries + 1,
            kind=error.kind.value,
            delay_ms=delay_ms,
        )
        await sleep(delay_ms / 1000.0)

    raise last_error

