# page_scout/crawler/cancellation.py
"""
Crawl-scoped cancellation token.

The signal is tripped once (when the page budget is reached) and stays set
for the rest of the run. :meth:`CancellationSignal.guard` races an awaitable
against the signal so queued and in-flight work is aborted, not just ignored.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

__all__ = ("CancellationSignal", "CrawlCancelled")

T = TypeVar("T")


class CrawlCancelled(Exception):
    """Raised by guarded operations aborted because the crawl was cancelled."""


class CancellationSignal:
    """One-way flag: many readers, set at most once."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def set(self, reason: str = "cancelled") -> bool:
        """Trips the signal. Returns True only for the call that actually tripped it."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Awaits *awaitable* unless the signal fires first.

        If the signal wins, the underlying task is cancelled and awaited, and
        :class:`CrawlCancelled` is raised. A result that was ready at the same
        moment is still returned.
        """
        if self.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise CrawlCancelled(self.reason)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise CrawlCancelled(self.reason) from None

    def __repr__(self) -> str:
        state = f"set ({self.reason})" if self.is_set() else "clear"
        return f"<CancellationSignal {state}>"
