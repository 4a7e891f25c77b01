"""Retry engine with exponential backoff and per-attempt timeouts.

execute_with_retry() wraps a deferred async operation with bounded attempts,
a caller-supplied retryable/fatal classifier, and optional per-attempt
timeout races. retry_with_backoff() is the decorator form used for
collaborator calls.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any, TypeVar

from meeting_transcriber.utils.errors import (
    MaxRetriesExceededError,
    NetworkFailureError,
    ServerFailureError,
    TimeoutExceededError,
)
from meeting_transcriber.utils.timeout import run_with_timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt cap and backoff schedule for one class of call site.

    The delay before attempt k+1 is initial_delay * multiplier**(k-1).
    """

    max_attempts: int
    initial_delay: float
    multiplier: float = 2.0

    def delays(self) -> list[float]:
        """Delays inserted between attempts (none after the last one)."""
        return [
            self.initial_delay * (self.multiplier**attempt)
            for attempt in range(self.max_attempts - 1)
        ]


# Generic API calls: 0.4s, 0.8s
GENERIC_POLICY = RetryPolicy(max_attempts=3, initial_delay=0.4)
# Transcription attempts: 1s, 2s
TRANSCRIPTION_POLICY = RetryPolicy(max_attempts=3, initial_delay=1.0)
# Long-running jobs: 5s, 15s, 45s
LONG_RUNNING_POLICY = RetryPolicy(max_attempts=4, initial_delay=5.0, multiplier=3.0)


def is_retryable_error(exc: BaseException) -> bool:
    """Classify a failure as transient (retry) or deterministic (fail fast).

    Transport failures, attempt timeouts, and 408/429/5xx-class server
    responses are retryable. Client errors (400, 401, 403, 413), decode
    failures, missing credentials, invalid input, and cancellation are not.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, (NetworkFailureError, TimeoutExceededError)):
        return True
    if isinstance(exc, ServerFailureError):
        return exc.status_code in RETRYABLE_STATUS_CODES
    return False


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    initial_delay: float,
    is_retryable: Callable[[BaseException], bool],
    description: str,
    multiplier: float = 2.0,
    attempt_timeout: float | None = None,
) -> T:
    """Run operation() up to max_attempts times with exponential backoff.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per call.
        max_attempts: Total number of invocations allowed (>= 1).
        initial_delay: Delay in seconds after the first failed attempt.
        is_retryable: Classifier; False re-raises the error immediately.
        description: Human-readable operation name for logs and errors.
        multiplier: Backoff growth factor between attempts.
        attempt_timeout: If set, each attempt races a timer of this length and
            a timer win counts as a (retryable) TimeoutExceededError.

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        MaxRetriesExceededError: After max_attempts retryable failures.
        Exception: The original error when is_retryable returns False.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delay = initial_delay
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            if attempt_timeout is not None:
                return await run_with_timeout(operation, attempt_timeout)
            return await operation()
        except Exception as exc:
            last_error = exc
            if not is_retryable(exc):
                logger.info(
                    "%s failed with non-retryable error on attempt %d: %s",
                    description,
                    attempt,
                    exc,
                )
                raise
            if attempt < max_attempts:
                logger.warning(
                    "Retry %d/%d for %s after %.1fs: %s",
                    attempt,
                    max_attempts - 1,
                    description,
                    delay,
                    exc,
                    extra={"attempt": attempt, "error": str(exc)},
                )
                await asyncio.sleep(delay)
                delay *= multiplier

    raise MaxRetriesExceededError(
        f"{description} failed after {max_attempts} attempts: {last_error}",
        description=description,
        attempts=max_attempts,
        last_error=last_error,
    ) from last_error


def retry_with_backoff(
    policy: RetryPolicy = GENERIC_POLICY,
    retryable_exceptions: tuple[type[Exception], ...] | None = None,
) -> Callable:
    """Decorator for retrying async functions via execute_with_retry.

    Args:
        policy: Attempt cap and backoff schedule.
        retryable_exceptions: Exception types eligible for retry. If None,
            is_retryable_error() classifies failures.

    Returns:
        Decorator that wraps an async function with retry logic.
    """

    def classify(exc: BaseException) -> bool:
        if retryable_exceptions is None:
            return is_retryable_error(exc)
        return isinstance(exc, retryable_exceptions)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await execute_with_retry(
                lambda: func(*args, **kwargs),
                max_attempts=policy.max_attempts,
                initial_delay=policy.initial_delay,
                multiplier=policy.multiplier,
                is_retryable=classify,
                description=func.__name__,
            )

        return wrapper

    return decorator
