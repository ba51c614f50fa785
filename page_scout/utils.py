# File: page_scout/utils.py
"""page_scout.utils: URL helpers shared by the crawler and the extractor."""

from __future__ import annotations

import ipaddress
import re
from typing import Any, Sequence
from urllib.parse import urlparse

from page_scout.logger import logger

__all__: Sequence[str] = (
    "normalize_url",
    "extract_host",
    "is_same_host",
)


_SCHEMES = ("http", "https")
_HOST_RE = re.compile(r"[a-z0-9_-]+(\.[a-z0-9_-]+)*\.?")


def _is_valid_host(host: str) -> bool:
    if ":" in host:
        try:
            ipaddress.IPv6Address(host.split("%", 1)[0])
        except ValueError:
            return False
        return True
    try:
        ascii_host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    return _HOST_RE.fullmatch(ascii_host) is not None


def normalize_url(url: Any) -> str:
    """Turns *url* into a de-duplication key: ``host + path`` without the trailing slash, lower-cased.

    Scheme, port, query and fragment are ignored, so ``https://Example.com/a/``
    and ``http://example.com/a`` share the key ``example.com/a``.
    Returns ``""`` for anything that is not an absolute http(s) URL with a valid host.
    """
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except (TypeError, ValueError, AttributeError) as exc:
        logger.warning("Invalid URL %r: %s", url, exc)
        return ""

    if parsed.scheme not in _SCHEMES:
        logger.warning("Invalid URL %r: scheme must be http or https", url)
        return ""
    if not host or not _is_valid_host(host):
        logger.warning("Invalid URL %r: bad or missing host", url)
        return ""

    path = parsed.path
    if path.endswith("/"):
        path = path[:-1]
    key = f"{host}{path}".lower()
    logger.debug("Normalized URL: %s -> %s", url, key)
    return key


def extract_host(url: str) -> str:
    """Returns the lower-cased hostname of *url* or ``""`` if it has none."""
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def is_same_host(url: str, host: str) -> bool:
    """Checks that *url* points at *host*; scheme and port are not compared."""
    candidate = extract_host(url)
    return bool(candidate) and candidate == host.lower()
