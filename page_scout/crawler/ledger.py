# page_scout/crawler/ledger.py
"""
Visitation ledger: which URL keys were claimed and what was extracted from them.
"""
from __future__ import annotations

import threading
from typing import Dict, FrozenSet, Set

from page_scout.crawler.cancellation import CancellationSignal
from page_scout.crawler.models import PageRecord

__all__ = ("VisitationLedger", "LedgerError")


class LedgerError(RuntimeError):
    """Recording against a key that was not claimed (or was already recorded)."""


class VisitationLedger:
    """Claimed keys, their page records and the page budget of one crawl run.

    A key is claimed at most once. The claim that makes the claimed count
    reach ``max_pages`` trips *signal* after the claim itself succeeded, so
    that page is still processed while every later claim fails.
    """

    def __init__(self, max_pages: int, signal: CancellationSignal) -> None:
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        self.max_pages = max_pages
        self.signal = signal
        self._claimed: Set[str] = set()
        self._pages: Dict[str, PageRecord] = {}
        self._lock = threading.Lock()

    def try_claim(self, key: str) -> bool:
        if not key:
            return False
        with self._lock:
            if self.signal.is_set():
                return False
            if key in self._claimed or len(self._claimed) >= self.max_pages:
                return False
            self._claimed.add(key)
            reached = len(self._claimed) >= self.max_pages
        if reached:
            self.signal.set(f"page budget of {self.max_pages} reached")
        return True

    def record(self, key: str, page: PageRecord) -> None:
        if key not in self._claimed:
            raise LedgerError(f"record() for unclaimed key {key!r}")
        if key in self._pages:
            raise LedgerError(f"key {key!r} recorded twice")
        self._pages[key] = page

    @property
    def pages(self) -> Dict[str, PageRecord]:
        return dict(self._pages)

    @property
    def claimed(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._claimed)

    @property
    def claimed_count(self) -> int:
        return len(self._claimed)

    @property
    def is_exhausted(self) -> bool:
        return len(self._claimed) >= self.max_pages

    def __len__(self) -> int:
        return len(self._pages)
