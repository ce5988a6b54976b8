"""Retry helpers using tenacity.

Only transport failures (connection errors, timeouts) are retried. HTTP error
responses, rate limiting included, are never retried: they propagate to the
caller and become item failures.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from profile_bridge.client.exceptions import NetworkError
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (httpx.NetworkError, httpx.TimeoutException, NetworkError)


async def retry_network_errors(
    call: Callable[[], Awaitable[T]],
    max_attempts: int = 1,
    min_wait: float = 1,
    max_wait: float = 30,
    description: str | None = None,
) -> T:
    """Await ``call()``, retrying transport failures with jittered backoff.

    Args:
        call: Zero-argument coroutine factory, invoked once per attempt
        max_attempts: Total attempts; 1 disables retrying
        min_wait: Minimum wait between attempts in seconds
        max_wait: Maximum wait between attempts in seconds
        description: Label used in log entries

    Returns:
        Result of the first successful attempt

    Raises:
        The last exception once attempts are exhausted, or immediately for
        any non-transient error.
    """
    if max_attempts <= 1:
        return await call()

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_random_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    ):
        with attempt:
            attempt_number = attempt.retry_state.attempt_number
            if attempt_number > 1:
                logger.info(
                    "retry_attempt",
                    call=description,
                    attempt=attempt_number,
                    max_attempts=max_attempts,
                )
            return await call()

    raise RuntimeError("Unexpected retry loop exit")  # pragma: no cover


def describe_call(method: str, endpoint: str, **extra: Any) -> str:
    """Short label for a request, used in retry log entries."""
    suffix = " ".join(f"{k}={v}" for k, v in extra.items() if v is not None)
    return f"{method} {endpoint}" + (f" {suffix}" if suffix else "")
