"""
Async retry utility for transient infrastructure failures.

Used for pool creation and connection acquisition, never for domain logic.

Retry policy:
- Exponential backoff with jitter
- Only retries on transient failures (DB connection errors, timeouts, network)
- Preserves original exception on final failure
- No logging inside utility (caller handles logging)
"""

import asyncio
import random
from typing import Callable, Type, Tuple, Any
import asyncpg
import aiohttp


DEFAULT_RETRIES = 2
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncio.TimeoutError,
    aiohttp.ClientError,
    ConnectionError,
    OSError,
)


async def retry_async(
    fn: Callable[[], Any],
    *,
    retries: int = DEFAULT_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    retry_on: Tuple[Type[Exception], ...] = TRANSIENT_EXCEPTIONS,
) -> Any:
    """
    Retry an async callable with exponential backoff.

    Args:
        fn: Callable returning an awaitable (or a plain value)
        retries: Number of retry attempts (total attempts = retries + 1)
        base_delay: Base delay in seconds for exponential backoff
        max_delay: Maximum delay in seconds
        retry_on: Exception types that are retried

    Raises:
        The last exception once retries are exhausted; non-retryable
        exceptions immediately.
    """
    for attempt in range(retries + 1):
        try:
            result = fn()
            if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                result = await result
            return result
        except retry_on:
            if attempt >= retries:
                raise
            delay = min(base_delay * (2 ** attempt), max_delay)
            # ±20% jitter
            jitter = delay * 0.2 * (random.random() * 2 - 1)
            await asyncio.sleep(max(0, delay + jitter))

    raise RuntimeError("retry_async: unexpected end of retry loop")
