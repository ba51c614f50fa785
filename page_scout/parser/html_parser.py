# === FILE: page_scout/parser/html_parser.py ===
"""HTML extraction for PageScout.

:func:`extract_page_data` turns raw markup into a
:class:`~page_scout.crawler.models.PageRecord`:

* h1 — text of the first ``<h1>`` or ``""``.
* first_paragraph — first ``<p>`` inside ``<main>`` when there is one,
  otherwise the first ``<p>`` of the document.
* outgoing_links — absolute URLs of every ``<a href="…">``.
* image_urls — absolute URLs of every ``<img src="…">``.

Relative references are resolved against the page URL. Malformed markup never
raises: missing pieces simply come back empty.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Iterable, Optional, Set
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from page_scout.crawler.models import PageRecord
from page_scout.logger import logger

__all__: Sequence[str] = ("extract_page_data", "resolve_urls")

_SKIP_SCHEMES = ("mailto:", "javascript:", "tel:", "data:")


def _text(tag: Optional[Tag]) -> str:
    return tag.get_text(" ", strip=True) if isinstance(tag, Tag) else ""


def _first_paragraph(soup: BeautifulSoup) -> str:
    main = soup.find("main")
    if isinstance(main, Tag):
        paragraph = main.find("p")
        if isinstance(paragraph, Tag):
            return _text(paragraph)
    return _text(soup.find("p"))


def resolve_urls(refs: Iterable[str], base_url: str) -> Set[str]:
    """Resolves *refs* against *base_url*; skips empty, non-navigable and unparseable ones."""
    urls: Set[str] = set()
    for raw in refs:
        ref = raw.strip()
        if not ref or ref.lower().startswith(_SKIP_SCHEMES):
            continue
        try:
            absolute = urljoin(base_url, ref)
            urlparse(absolute).hostname
        except ValueError:
            logger.warning("Invalid URL %r on %s", ref, base_url)
            continue
        urls.add(absolute)
    return urls


def _attr_values(soup: BeautifulSoup, name: str, attr: str) -> list[str]:
    values: list[str] = []
    for tag in soup.find_all(name):
        if not isinstance(tag, Tag):
            continue
        value = tag.get(attr)
        if isinstance(value, str):
            values.append(value)
    return values


def extract_page_data(html: str, page_url: str) -> PageRecord:
    """Parse *html* fetched from *page_url* into a :class:`PageRecord`."""
    try:
        soup = BeautifulSoup(html, "html.parser")
        return PageRecord(
            url=page_url,
            h1=_text(soup.find("h1")),
            first_paragraph=_first_paragraph(soup),
            outgoing_links=frozenset(resolve_urls(_attr_values(soup, "a", "href"), page_url)),
            image_urls=frozenset(resolve_urls(_attr_values(soup, "img", "src"), page_url)),
        )
    except Exception as exc:  # html.parser may choke on pathological markup
        logger.warning("Error parsing HTML from %s: %s", page_url, exc)
        return PageRecord(url=page_url)
