from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from deepreport.errors import RateLimitError

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


async def with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
    label: str = "operation",
    sleep: Sleeper = asyncio.sleep,
) -> T:
    """Run ``operation``, retrying only when it raises ``RateLimitError``.

    ``max_retries`` bounds the total number of attempts. After the i-th failed
    attempt (0-based) the wrapper waits ``base_delay * 2**i`` seconds. Any
    other exception propagates immediately. When every attempt was rate
    limited the last ``RateLimitError`` is re-raised.
    """
    attempts = max(int(max_retries), 1)

    for attempt in range(attempts):
        try:
            return await operation()
        except RateLimitError:
            if attempt == attempts - 1:
                logger.error(f"{label} still rate limited after {attempts} attempts")
                raise
            delay = base_delay * (2**attempt)
            logger.warning(
                f"{label} rate limited (attempt {attempt + 1}/{attempts}), retrying in {delay:.2f}s"
            )
            await sleep(delay)
