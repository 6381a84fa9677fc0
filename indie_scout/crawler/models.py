"""
Data models and error types for the IndieScout crawler.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from indie_scout.parser.html_parser import ExtractedContent

__all__ = (
    "RobotsDecision",
    "FetchedPage",
    "CrawlResult",
    "FetchError",
    "TransportError",
    "ContentPolicyError",
    "INVALID_URL",
    "ROBOTS_DISALLOWED",
)

INVALID_URL = "invalid URL"
ROBOTS_DISALLOWED = "Disallowed by robots.txt"


@dataclass(frozen=True, slots=True)
class RobotsDecision:
    """Outcome of a robots.txt check for one URL."""

    allowed: bool
    crawl_delay: float
    user_agent: str


@dataclass(slots=True)
class FetchedPage:
    """Raw HTML response that passed every content-policy check."""

    url: str
    status_code: int
    html: str
    content_type: str


@dataclass(slots=True)
class CrawlResult:
    """Result of crawling one URL, successful or not."""

    url: str
    success: bool
    crawl_time_ms: int
    robots_allowed: bool
    status_code: Optional[int] = None
    content: Optional[ExtractedContent] = None
    error: Optional[str] = None
    robots_delay: Optional[float] = None


class FetchError(Exception):
    """Base class for fetch failures."""

    retryable: bool = False

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(FetchError):
    """Timeout, DNS failure, connection reset: worth retrying."""

    retryable = True


class ContentPolicyError(FetchError):
    """Oversized body, wrong content type or non-2xx status: never retried."""
