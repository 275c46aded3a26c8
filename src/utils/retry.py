"""Bounded exponential-backoff retry for async calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    base_delay: float = 0.2,
    operation_name: str = "operation",
) -> T:
    """Run ``operation``, retrying up to ``retries`` more times.

    Delays grow as base_delay, 2*base_delay, 4*base_delay, ... The last error
    is re-raised once the retries are used up.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            logger.error("Error %s (attempt %d/%d): %s", operation_name, attempt + 1, retries + 1, e)
            if attempt >= retries:
                raise
            await asyncio.sleep(base_delay * (2 ** attempt))
            attempt += 1
