"""
Retry helpers for network work (page loads, search, LLM calls).

Every exception is treated as retryable; callers that need to stop early
should not wrap the operation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sized, TypeVar

from gpaplanner.errors import RetryExhaustedError


logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, base_delay: float, max_delay: float | None = None) -> float:
    """
    Delay after a failed attempt (1-based): base_delay * 2^(attempt-1), optionally capped.
    """
    delay = base_delay * (2 ** (attempt - 1))
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    *,
    sleep: SleepFn = asyncio.sleep,
    label: str = "operation",
) -> T:
    """
    Await operation() up to max_retries times with exponential backoff.

    The last exception is re-raised unchanged once all attempts failed.
    There is no sleep after the final attempt.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    for attempt in range(1, max_retries + 1):
        try:
            result = await operation()
        except Exception as exc:
            logger.warning("%s: attempt %d/%d failed: %s", label, attempt, max_retries, exc)
            if attempt == max_retries:
                raise
            await sleep(backoff_delay(attempt, base_delay))
        else:
            logger.debug("%s: attempt %d/%d succeeded", label, attempt, max_retries)
            return result

    # unreachable: the loop either returns or raises
    raise RuntimeError("retry loop exited without result")


async def retry_until_nonempty(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 5,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    *,
    sleep: SleepFn = asyncio.sleep,
    label: str = "operation",
) -> T:
    """
    Await operation() until it returns a non-empty result.

    Both exceptions and empty results count as failed attempts. The delay
    grows exponentially up to max_delay. When the attempts run out,
    RetryExhaustedError is raised.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: BaseException | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            result = await operation()
        except Exception as exc:
            last_error = exc
            logger.warning("%s: attempt %d/%d failed: %s", label, attempt, max_attempts, exc)
        else:
            if _is_nonempty(result):
                logger.debug("%s: attempt %d/%d returned data", label, attempt, max_attempts)
                return result
            logger.info("%s: attempt %d/%d returned no data", label, attempt, max_attempts)

        if attempt < max_attempts:
            await sleep(backoff_delay(attempt, base_delay, max_delay))

    raise RetryExhaustedError(label, max_attempts, last_error)


def _is_nonempty(result: object) -> bool:
    if result is None:
        return False
    if isinstance(result, Sized):
        return len(result) > 0
    return True
