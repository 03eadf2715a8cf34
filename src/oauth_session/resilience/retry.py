"""
Retry utilities with kind-aware handling.

Uses the ErrorKind tags to decide whether a failed attempt is worth
repeating:
- Transient and timeout errors: retry with exponential backoff
- Grant rejections: fail immediately (no retry)
- Permanent and store errors: fail immediately (no retry)
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import TypeVar

from oauth_session.errors.classifiers import classify_transport_exception
from oauth_session.errors.exceptions import (
    CredentialError,
    RetryExhaustedError,
    ThrottlingError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0

    # If True, use retry_after from ThrottlingError when available
    respect_retry_after: bool = True

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        # bool('false') would be True
        if isinstance(self.respect_retry_after, str):
            self.respect_retry_after = self.respect_retry_after.strip().lower() in (
                "1",
                "true",
                "yes",
            )
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def get_delay(self, attempt: int, error: Exception | None = None) -> float:
        """
        Calculate delay with equal jitter to prevent thundering herd.

        Args:
            attempt: 0-indexed attempt number
            error: Optional exception to check for retry_after

        Returns:
            Delay in seconds
        """
        # Check for explicit retry_after (e.g., from 429 response)
        if (
            self.respect_retry_after
            and isinstance(error, ThrottlingError)
            and error.retry_after
        ):
            return min(error.retry_after, self.max_delay)

        base_delay = self.base_delay * (self.exponential_base**attempt)

        # Equal jitter: half fixed, half random
        jitter = random.uniform(0, base_delay / 2)
        delay = (base_delay / 2) + jitter

        return min(delay, self.max_delay)

    def should_retry(self, error: CredentialError, attempt: int) -> bool:
        """
        Determine if error should be retried.

        Args:
            error: The classified exception that occurred
            attempt: 0-indexed current attempt

        Returns:
            True if should retry
        """
        if attempt >= self.max_attempts - 1:
            return False
        return error.is_retryable


# Default configurations
DEFAULT_RETRY = RetryConfig(max_attempts=3, base_delay=1.0)
NO_RETRY = RetryConfig(max_attempts=1)


@dataclass
class RetryStats:
    """Statistics from a retry operation."""

    attempts: int = 0
    total_delay: float = 0.0
    final_error: Exception | None = None
    success: bool = False

    @property
    def retried(self) -> bool:
        """Whether any retries occurred."""
        return self.attempts > 1


def _log_retry_attempt(
    operation: str,
    attempt: int,
    config: RetryConfig,
    delay: float,
    error: CredentialError,
) -> None:
    using_server_delay = (
        config.respect_retry_after
        and isinstance(error, ThrottlingError)
        and error.retry_after is not None
    )
    log_extras: dict[str, object] = {
        "operation": operation,
        "attempt": attempt + 1,
        "max_attempts": config.max_attempts,
        "error_kind": error.kind.value,
        "delay_seconds": round(delay, 2),
        "delay_source": "server" if using_server_delay else "exponential_backoff",
        "error_message": str(error)[:200],
    }
    logger.warning("Retryable error for %s, will retry", operation, extra=log_extras)


def _safe_invoke_on_retry(
    on_retry: Callable[[Exception, int, float], None],
    error: Exception,
    attempt: int,
    delay: float,
    operation: str,
) -> None:
    """Call the on_retry callback, logging any errors it raises."""
    try:
        on_retry(error, attempt, delay)
    except Exception as cb_err:
        logger.warning(
            "Error in on_retry callback for %s: %s",
            operation,
            str(cb_err)[:100],
            extra={"operation": operation, "callback_error": str(cb_err)[:100]},
        )


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation: str | None = None,
    on_retry: Callable[[Exception, int, float], None] | None = None,
    stats: RetryStats | None = None,
) -> T:
    """
    Run an async callable with bounded, kind-aware retries.

    Every exception is classified before the retry decision. Non-retryable
    errors are raised immediately and unchanged; a retryable error on the
    last allowed attempt is raised as RetryExhaustedError.

    Args:
        func: Zero-argument coroutine function performing one attempt
        config: Retry configuration (defaults to DEFAULT_RETRY)
        operation: Name used in logs and in RetryExhaustedError
        on_retry: Callback before each retry (error, attempt, delay)
        stats: Optional RetryStats filled in as attempts happen

    Returns:
        Result of the first successful attempt
    """
    config = config or DEFAULT_RETRY
    operation = operation or getattr(func, "__name__", "operation")
    stats = stats if stats is not None else RetryStats()

    for attempt in range(config.max_attempts):
        stats.attempts = attempt + 1
        try:
            result = await func()
        except Exception as e:
            error = classify_transport_exception(e)
            stats.final_error = error

            if not config.should_retry(error, attempt):
                if error.is_retryable:
                    logger.error(
                        "Max retries exhausted for %s: %s",
                        operation,
                        str(error)[:200],
                        extra={
                            "operation": operation,
                            "error_kind": error.kind.value,
                            "max_attempts": config.max_attempts,
                        },
                    )
                    raise RetryExhaustedError(operation, attempt + 1, error) from e
                if error is e:
                    raise
                raise error from e

            delay = config.get_delay(attempt, error)
            _log_retry_attempt(operation, attempt, config, delay, error)
            if on_retry:
                _safe_invoke_on_retry(on_retry, error, attempt, delay, operation)

            stats.total_delay += delay
            await asyncio.sleep(delay)
            continue

        if attempt > 0:
            logger.info(
                "Retry succeeded for %s after %d attempts",
                operation,
                attempt + 1,
                extra={
                    "operation": operation,
                    "attempt": attempt + 1,
                    "total_attempts": config.max_attempts,
                },
            )
        stats.success = True
        stats.final_error = None
        return result

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"retry loop for {operation} exited without a result")


def with_retry_async(
    config: RetryConfig | None = None,
    on_retry: Callable[[Exception, int, float], None] | None = None,
):
    """
    Decorator for retrying async functions with intelligent backoff.

    Usage:
        @with_retry_async(config=RetryConfig(max_attempts=5))
        async def fetch_metadata():
            ...
    """

    def decorator(func: Callable[..., Awaitable[T]]):
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await retry_async(
                lambda: func(*args, **kwargs),
                config=config,
                operation=func.__name__,
                on_retry=on_retry,
            )

        return wrapper

    return decorator


__all__ = [
    "RetryConfig",
    "RetryStats",
    "retry_async",
    "with_retry_async",
    "DEFAULT_RETRY",
    "NO_RETRY",
]
