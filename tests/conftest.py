# File: tests/conftest.py
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Dict, List, Optional, Union

import pytest
from aiohttp import web

from page_scout.config import CrawlerConfig
from page_scout.crawler.cancellation import CancellationSignal
from page_scout.crawler.models import FetchResult
from page_scout.logger import configure

BASE = "http://example.com"


@pytest.fixture(autouse=True)
def fresh_logging():
    """Re-attach the project logger to the stream captured for the current test."""
    configure(level="DEBUG")
    yield


def make_config(**overrides) -> CrawlerConfig:
    data = {"base_url": BASE, "max_concurrency": 10, "max_pages": 100, "timeout": 2.0}
    data.update(overrides)
    return CrawlerConfig(**data)


def html_page(*links: str, h1: str = "", paragraph: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return f"<html><body><h1>{h1}</h1><p>{paragraph}</p>{anchors}</body></html>"


class FakeFetcher:
    """Scripted stand-in for :class:`page_scout.crawler.fetcher.Fetcher`.

    *pages* maps absolute URLs to HTML, a ready :class:`FetchResult`, or an
    exception instance to raise. Unknown URLs answer with HTTP 404.
    """

    def __init__(
        self,
        pages: Dict[str, Union[str, FetchResult, BaseException]],
        delays: Optional[Dict[str, float]] = None,
        delay: float = 0.0,
    ) -> None:
        self.pages = pages
        self.delays = delays or {}
        self.delay = delay
        self.calls: List[str] = []
        self.cancelled: List[str] = []
        self.in_flight = 0
        self.peak = 0

    async def fetch(self, url: str, signal: Optional[CancellationSignal] = None) -> FetchResult:
        if signal is None:
            return await self._get(url)
        return await signal.guard(self._get(url))

    async def _get(self, url: str) -> FetchResult:
        self.calls.append(url)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, self.delay))
        except asyncio.CancelledError:
            self.cancelled.append(url)
            raise
        finally:
            self.in_flight -= 1

        entry = self.pages.get(url)
        if entry is None:
            return FetchResult(url, 404, "text/html")
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, FetchResult):
            return entry
        return FetchResult(url, 200, "text/html; charset=utf-8", entry)


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()
