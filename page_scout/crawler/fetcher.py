# page_scout/crawler/fetcher.py
"""
Fetcher module: HTTP GET with timeout, retry/backoff and prompt abort on cancellation.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from aiohttp import ClientError, ClientSession

from page_scout.config import CrawlerConfig
from page_scout.crawler.cancellation import CancellationSignal
from page_scout.crawler.models import FetchResult

__all__ = ("Fetcher", "FetchError")


class FetchError(Exception):
    """Network-level failure (connection error, timeout, retries exhausted)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class Fetcher:
    """Handles HTTP fetching with retries/backoff and cancellation."""

    RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

    def __init__(self, session: ClientSession, config: CrawlerConfig) -> None:
        self.session = session
        self.config = config
        self.logger = logging.getLogger("PageScout")

    async def fetch(self, url: str, signal: Optional[CancellationSignal] = None) -> FetchResult:
        """
        Fetch *url*. Non-2xx responses are returned, not raised.

        With a *signal*, the request (including backoff sleeps) is cancelled as
        soon as the signal fires and :class:`CrawlCancelled` is raised.
        """
        if signal is None:
            return await self._get(url)
        return await signal.guard(self._get(url))

    async def _get(self, url: str) -> FetchResult:
        attempts = 0
        while True:
            try:
                async with self.session.get(url) as resp:
                    if resp.status in self.RETRY_STATUS and attempts < self.config.retry_times:
                        raise ClientError(f"retryable status {resp.status}")
                    ctype = resp.headers.get("Content-Type", "")
                    result = FetchResult(url=str(resp.url), status=resp.status, content_type=ctype)
                    if result.ok and result.is_html:
                        body = await resp.text(errors="replace")
                        result = FetchResult(result.url, result.status, ctype, body)
                    return result
            except (ClientError, asyncio.TimeoutError) as exc:
                attempts += 1
                reason = str(exc) or type(exc).__name__
                if attempts > self.config.retry_times:
                    raise FetchError(url, reason) from exc
                backoff = min(60, 2**attempts)
                self.logger.debug(
                    "Retry %d/%d for %s after %d s (%s)",
                    attempts, self.config.retry_times, url, backoff, reason,
                )
                await asyncio.sleep(backoff)
