"""Bounded retry with exponential backoff for async callables."""
import asyncio
import random
from logging import Logger
from typing import Awaitable, Callable, Optional, TypeVar

from ..exceptions import QuotaExceeded

T = TypeVar('T')


async def retry_async(
        fn: Callable[[], Awaitable[T]],
        attempts: int = 3,
        base_delay: float = 0.1,
        max_delay: float = 5.0,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        logger: Optional[Logger] = None,
        description: str = 'operation',
) -> T:
    """
    Call ``fn`` until it succeeds or ``attempts`` calls have failed.

    The delay doubles after every failure (with up to 10% jitter) and is capped
    at ``max_delay``. A ``QuotaExceeded`` carrying ``retry_after`` waits at least
    that long. The last exception is re-raised.

    Args:
        fn: Zero-argument coroutine factory
        attempts: Maximum number of calls (>= 1)
        base_delay: Delay in seconds after the first failure
        max_delay: Upper bound for a single delay
        retry_on: Exception types that trigger another attempt
        logger: Optional logger for retry warnings
        description: Label used in log messages

    Returns:
        Result of the first successful call
    """
    attempts = max(1, attempts)
    delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except retry_on as e:
            if attempt >= attempts:
                raise
            wait = min(max_delay, delay) * (1.0 + random.random() * 0.1)
            if isinstance(e, QuotaExceeded) and e.retry_after:
                wait = max(wait, e.retry_after)
            if logger:
                logger.warning("%s failed (attempt %d/%d), retrying in %.2fs: %s",
                               description, attempt, attempts, wait, e)
            await asyncio.sleep(wait)
            delay *= 2
    raise RuntimeError('unreachable')  # pragma: no cover
