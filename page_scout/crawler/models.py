# page_scout/crawler/models.py
"""
Data models for the PageScout crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet


@dataclass(frozen=True, slots=True)
class PageRecord:
    """Structured content extracted from one successfully fetched HTML page."""

    url: str
    h1: str = ""
    first_paragraph: str = ""
    outgoing_links: FrozenSet[str] = field(default_factory=frozenset)
    image_urls: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Raw HTTP response as seen by the crawler."""

    url: str
    status: int
    content_type: str
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def mime(self) -> str:
        return self.content_type.split(";", 1)[0].strip().lower()

    @property
    def is_html(self) -> bool:
        return self.mime == "text/html"
