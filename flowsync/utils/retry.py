from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int, base: float = 1.5) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base=base)
    await asyncio.sleep(delay)


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    retries: int,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    base: float = 1.5,
) -> T:
    """Await ``operation`` up to ``retries + 1`` times, backing off in between.

    The last failure is re-raised unchanged.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= retries:
                raise
            attempt += 1
            logger.debug(f"Retrying after failure (attempt {attempt}/{retries}): {exc}")
            await schedule_retry(attempt, base=base)
