"""
Global concurrency limiter middleware for update processing.

Bounds how many updates hold a database connection at once so a burst of
joins never exhausts the pool.
"""
import asyncio
import logging
from typing import Callable, Awaitable, Dict, Any

from aiogram import BaseMiddleware

logger = logging.getLogger(__name__)


class ConcurrencyLimiterMiddleware(BaseMiddleware):
    """At most `limit` updates are processed simultaneously; the rest wait."""

    def __init__(self, limit: int):
        super().__init__()
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)

    async def __call__(
        self,
        handler: Callable[[Any, Dict[str, Any]], Awaitable[Any]],
        event: Any,
        data: Dict[str, Any],
    ) -> Any:
        if self._semaphore.locked():
            logger.debug("CONCURRENCY_LIMIT_REACHED limit=%s", self.limit)
        async with self._semaphore:
            return await handler(event, data)
