# === FILE: page_scout/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Optional

from aiohttp import ClientSession, ClientTimeout

from page_scout.config import CrawlerConfig
from page_scout.crawler.cancellation import CancellationSignal, CrawlCancelled
from page_scout.crawler.fetcher import Fetcher, FetchError
from page_scout.crawler.ledger import LedgerError, VisitationLedger
from page_scout.crawler.limiter import ConcurrencyLimiter
from page_scout.crawler.models import PageRecord
from page_scout.crawler.tracker import CompletionTracker
from page_scout.parser.html_parser import extract_page_data
from page_scout.utils import extract_host, is_same_host, normalize_url

__all__ = ("AsyncCrawler",)


class AsyncCrawler:
    """Рекурсивный асинхронный краулер одного хоста с лимитом страниц и одновременных запросов.

    Every discovered link becomes its own branch task. Branches share one
    ledger (dedup + page budget), one limiter and one cancellation signal;
    all of them are created anew by :meth:`crawl`.
    """

    def __init__(self, config: CrawlerConfig, fetcher: Optional[Fetcher] = None) -> None:
        self.config = config
        self.base_url = str(config.base_url)
        self.base_host = extract_host(self.base_url)
        self.fetcher = fetcher
        self.session: Optional[ClientSession] = None
        self.logger = logging.getLogger("PageScout")
        self._reset()

    async def __aenter__(self) -> AsyncCrawler:
        if self.fetcher is None:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.config.timeout),
                headers={"User-Agent": self.config.user_agent},
                raise_for_status=False,
            )
            self.fetcher = Fetcher(self.session, self.config)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.session is not None:
            if not self.session.closed:
                await self.session.close()
            self.session = None
            self.fetcher = None

    def _reset(self) -> None:
        self.signal = CancellationSignal()
        self.ledger = VisitationLedger(self.config.max_pages, self.signal)
        self.limiter = ConcurrencyLimiter(self.config.max_concurrency)
        self.tracker = CompletionTracker()

    async def crawl(self) -> Dict[str, PageRecord]:
        if self.fetcher is None:
            raise RuntimeError("Fetcher not initialized, use 'async with AsyncCrawler(...)'")
        self._reset()
        self.logger.info(
            "Старт обхода: %s (concurrency=%d, max_pages=%d)",
            self.base_url, self.config.max_concurrency, self.config.max_pages,
        )
        start = time.monotonic()
        self.tracker.spawn(self.visit(self.base_url), name=self.base_url)
        try:
            await self.tracker.drain()
        finally:
            await self.tracker.cancel_all()

        for exc in self.tracker.errors:
            if isinstance(exc, LedgerError):
                raise exc

        pages = self.ledger.pages
        duration = time.monotonic() - start
        self.logger.info(
            "Завершено: %d страниц (%d попыток) за %.2f с (%.2f стр/с)",
            len(pages), self.ledger.claimed_count, duration, len(pages) / duration if duration else 0,
        )
        if self.signal.is_set():
            self.logger.info("Обход остановлен: %s", self.signal.reason)
        return pages

    async def visit(self, url: str) -> None:
        """Processes one URL and waits for the branches spawned for its links."""
        if self.signal.is_set():
            return
        if not is_same_host(url, self.base_host):
            self.logger.debug("Out of scope: %s", url)
            return
        key = normalize_url(url)
        if not key:
            return
        if not self.ledger.try_claim(key):
            self.logger.debug("Skip %s (already claimed or budget reached)", url)
            return

        # the claim that reached the budget is still fetched
        signal = None if self.signal.is_set() else self.signal
        fetcher = self.fetcher
        try:
            result = await self.limiter.run(lambda: fetcher.fetch(url, signal), signal)
        except CrawlCancelled:
            self.logger.debug("Fetch cancelled: %s", url)
            return
        except FetchError as exc:
            self.logger.warning("Failed %s: %s", url, exc.reason)
            return

        if not result.ok:
            self.logger.warning("Failed %s: HTTP %d", url, result.status)
            return
        if not result.is_html:
            self.logger.warning("Failed %s: non-HTML content type %r", url, result.content_type)
            return

        page = extract_page_data(result.body, url)
        self.ledger.record(key, page)
        self.logger.debug("Recorded %s (%d links)", key, len(page.outgoing_links))

        children = [
            self.tracker.spawn(self.visit(link), name=link)
            for link in sorted(page.outgoing_links)
        ]
        if children:
            await asyncio.gather(*children, return_exceptions=True)
