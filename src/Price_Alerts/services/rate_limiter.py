"""Request pacing for the exchange market-data endpoint.

A semaphore caps in-flight requests; a token bucket spaces them out. Callers
reserve a token up front and sleep off any deficit, so waiters are served in
arrival order. Nothing here retries: a failed lookup is "price unknown" until
the next scan pass.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

EXCHANGE_REQUESTS_PER_SECOND: float = 2.0
EXCHANGE_MAX_CONCURRENT: int = 4


class RateLimiter:
    """Concurrency cap plus token bucket.

    The bucket holds ``max_concurrent`` tokens, so a cold limiter allows a
    burst of that size before pacing at ``requests_per_second``.

    Usage::

        async with limiter.slot():
            response = await client.get(url)
    """

    def __init__(
        self,
        max_concurrent: int = EXCHANGE_MAX_CONCURRENT,
        requests_per_second: float = EXCHANGE_REQUESTS_PER_SECOND,
    ) -> None:
        if requests_per_second <= 0:
            msg = f"requests_per_second must be positive, got {requests_per_second}"
            raise ValueError(msg)
        self._slots = asyncio.Semaphore(max_concurrent)
        self._rate = requests_per_second
        self._capacity = float(max_concurrent)
        self._tokens = self._capacity
        self._stamp = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait for a free slot and a token. Pair with :meth:`release`."""
        await self._slots.acquire()
        try:
            await self._reserve_token()
        except BaseException:
            self._slots.release()
            raise

    def release(self) -> None:
        self._slots.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    async def _reserve_token(self) -> None:
        async with self._lock:
            now = time.monotonic()
            self._tokens = min(self._capacity, self._tokens + (now - self._stamp) * self._rate)
            self._stamp = now
            # May go negative: the deficit is this caller's wait
            self._tokens -= 1.0
            wait = -self._tokens / self._rate if self._tokens < 0 else 0.0

        if wait > 0:
            logger.debug("Exchange request paced for %.2fs", wait)
            await asyncio.sleep(wait)
