"""
Retry policy for source HTTP requests, built on tenacity.

Only transient failures are retried, with a short backoff: a status check
is bounded by the source timeout, so long waits would be cut off anyway.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from paywatch.core.exceptions import ExternalServiceError
from paywatch.core.logging import get_logger

T = TypeVar("T")

logger = get_logger("retry")


def is_transient_error(exception: BaseException) -> bool:
    """Check if exception is a transient network/infrastructure error."""
    return isinstance(exception, ExternalServiceError) and exception.is_transient()


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"Retrying source request (attempt {retry_state.attempt_number}): {exc}")


def retry_policy(attempts: int = 3, max_wait: float = 2.0) -> AsyncRetrying:
    """Build the standard retry controller."""
    return AsyncRetrying(
        retry=retry_if_exception(is_transient_error),
        wait=wait_exponential(multiplier=0.25, min=0.25, max=max_wait),
        stop=stop_after_attempt(attempts),
        reraise=True,
        before_sleep=_log_retry,
    )


async def execute_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = 3,
    **kwargs: Any,
) -> T:
    """Execute an async function with the standard retry policy."""
    async for attempt in retry_policy(attempts):
        with attempt:
            return await func(*args, **kwargs)
    raise AssertionError("unreachable")  # pragma: no cover
