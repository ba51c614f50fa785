# page_scout/crawler/tracker.py
"""
Bookkeeping for the dynamic tree of crawl branches.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, List, Optional, Set

__all__ = ("CompletionTracker",)


class CompletionTracker:
    """Set of in-flight branch tasks that can be drained to a fixed point.

    Every registered task removes itself from the set through a done-callback,
    whether it returned, raised or was cancelled. Exceptions raised by
    branches are logged and kept in :attr:`errors`; they never reach sibling
    branches.
    """

    def __init__(self) -> None:
        self._pending: Set[asyncio.Task[Any]] = set()
        self.errors: List[BaseException] = []
        self.logger = logging.getLogger("PageScout")

    def register(self, task: asyncio.Task[Any]) -> asyncio.Task[Any]:
        self._pending.add(task)
        task.add_done_callback(self._finished)
        return task

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task[Any]:
        return self.register(asyncio.create_task(coro, name=name))

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.errors.append(exc)
            self.logger.error("Branch %s failed: %r", task.get_name(), exc, exc_info=exc)

    async def drain(self) -> None:
        """Returns once no branch is pending, including ones registered while waiting."""
        while self._pending:
            await asyncio.wait(set(self._pending))

    async def cancel_all(self) -> None:
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def __len__(self) -> int:
        return len(self._pending)
