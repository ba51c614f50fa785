# page_scout/crawler/limiter.py
"""
Global cap on the number of fetches running at the same time.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from page_scout.crawler.cancellation import CancellationSignal, CrawlCancelled

__all__ = ("ConcurrencyLimiter",)

T = TypeVar("T")


class ConcurrencyLimiter:
    """Admits at most ``max_concurrency`` operations at once, in FIFO order.

    The limiter has no timeout of its own. When a *signal* is passed to
    :meth:`run`, a request still waiting for a slot fails with
    :class:`CrawlCancelled` as soon as the signal fires.
    """

    def __init__(self, max_concurrency: int = 10) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self.active = 0
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        signal: Optional[CancellationSignal] = None,
    ) -> T:
        if signal is None:
            await self._semaphore.acquire()
        else:
            await signal.guard(self._semaphore.acquire())
            if signal.is_set():
                # admitted in the same tick the signal fired
                self._semaphore.release()
                raise CrawlCancelled(signal.reason)

        self.active += 1
        try:
            return await operation()
        finally:
            self.active -= 1
            self._semaphore.release()

    @property
    def saturated(self) -> bool:
        return self._semaphore.locked()
