"""indie_scout.utils: URL helpers shared by the crawler, scorer and queue."""

from __future__ import annotations

from typing import Collection, List, Optional, Sequence
from urllib.parse import urlparse, urlunparse

from indie_scout.logger import logger

__all__: Sequence[str] = (
    "is_valid_url",
    "extract_origin",
    "extract_hostname",
    "normalize_url",
    "remove_duplicates",
)


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
        valid = parsed.scheme in ("http", "https") and bool(parsed.hostname)
        if valid:
            # accessing .port raises ValueError on garbage like "host:abc"
            parsed.port
    except ValueError as exc:
        logger.debug("URL validation error %s: %s", url, exc)
        return False
    return valid


def extract_origin(url: str) -> Optional[str]:
    """Return ``scheme://host[:port]`` or *None* for unusable URLs."""
    if not is_valid_url(url):
        return None
    parsed = urlparse(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def extract_hostname(url: str, strip_www: bool = False) -> str:
    """Lower-cased hostname, empty string when missing."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
    if strip_www and host.startswith("www."):
        return host[4:]
    return host


def normalize_url(url: str) -> str:
    """Lower-case scheme and host, drop the fragment."""
    parsed = urlparse(url)
    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), parsed.path or "/", parsed.params, parsed.query, "")
    )


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Удаляет дубликаты из списка URL, сохраняя порядок."""
    unique = list(dict.fromkeys(urls))
    removed = len(urls) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate URLs", removed)
    return unique
