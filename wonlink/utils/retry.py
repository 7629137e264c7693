from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt)
    await asyncio.sleep(delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]], attempts: int, description: str = "operation"
) -> T:
    """Await ``operation`` up to ``attempts`` times.

    The last exception is re-raised once every attempt has failed.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt >= attempts:
                raise
            logger.warning(
                f"{description} failed (attempt {attempt}/{attempts}): {e}; retrying"
            )
            await schedule_retry(attempt)
    raise ValueError("attempts must be at least 1")
