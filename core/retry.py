"""Bounded retry with exponential backoff and jitter."""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0
DEFAULT_JITTER = 0.2


def compute_delay(
    attempt: int,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    jitter: float = DEFAULT_JITTER,
) -> float:
    """
    Delay in seconds before retrying after failed attempt `attempt` (1-indexed).

    min(max_delay, initial_delay * 2^attempt) plus up to `jitter` seconds.
    """
    backoff = min(max_delay, initial_delay * (2 ** attempt))
    return backoff + random.uniform(0, jitter)


async def retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
) -> T:
    """
    Call `fn` until it succeeds or the retry budget is spent.

    Args:
        fn: Zero-argument callable returning a fresh awaitable per attempt
        max_retries: Total attempts, including the first
        initial_delay: Backoff base in seconds
        max_delay: Backoff cap in seconds
        should_retry: Optional predicate; returning False re-raises at once

    Returns:
        The first successful result.

    Raises:
        The last exception, unchanged, once attempts are exhausted or
        `should_retry` rejects it.
    """
    attempts = 0

    while True:
        try:
            return await fn()
        except Exception as e:
            attempts += 1

            if attempts >= max_retries or (should_retry and not should_retry(e)):
                raise

            delay = compute_delay(attempts, initial_delay, max_delay)
            logger.info(
                f"Retry attempt {attempts} of {max_retries} after {delay * 1000:.0f}ms: {e}"
            )
            await asyncio.sleep(delay)
