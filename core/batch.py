"""Windowed batch processing to stay under rate limits."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, TypeVar

from .retry import retry

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def process_batch(
    items: Sequence[T],
    batch_size: int,
    processor: Callable[[T], Awaitable[R]],
    delay: float = 0.1,
) -> List[R]:
    """
    Process items in fixed-size windows.

    Items inside a window run concurrently, each wrapped in `retry` with the
    default policy. Windows run one after another with `delay` seconds in
    between (none after the last one).

    Returns:
        Results in input order.

    Raises:
        The first unrecoverable item failure; partial results are dropped.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    results: List[R] = []

    for i in range(0, len(items), batch_size):
        window = items[i:i + batch_size]
        window_results = await asyncio.gather(
            *[retry(lambda item=item: processor(item)) for item in window]
        )
        results.extend(window_results)

        if i + batch_size < len(items):
            logger.debug(f"Batch window {i // batch_size + 1} done, pausing {delay}s")
            await asyncio.sleep(delay)

    return results
