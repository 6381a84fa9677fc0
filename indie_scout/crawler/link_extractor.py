"""
Link extraction utilities for IndieScout.
"""
from __future__ import annotations

from typing import List, Optional
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup
from bs4.element import Tag

__all__ = ("extract_links", "DEFAULT_MAX_LINKS")

DEFAULT_MAX_LINKS = 20
_SKIP_PREFIXES = ("#", "mailto:", "tel:", "javascript:")


def extract_links(soup: BeautifulSoup, base_url: str, limit: Optional[int] = DEFAULT_MAX_LINKS) -> List[str]:
    """
    Collect absolute http(s) URLs from every ``<a href>``, internal and external.

    Skips anchors, mailto:, tel: and javascript: links. Order follows the
    document, duplicates are dropped and at most *limit* URLs are returned
    (*None* means unbounded).
    """
    seen: set[str] = set()
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if limit is not None and len(links) >= limit:
            break
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        raw = href_val.strip()
        if not raw or raw.lower().startswith(_SKIP_PREFIXES):
            continue
        try:
            absolute = _strip_fragment(urljoin(base_url, raw))
            parsed = urlparse(absolute)
        except ValueError:
            continue
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            continue
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links


def _strip_fragment(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.fragment:
        return url
    return urlunparse(parsed._replace(fragment=""))
