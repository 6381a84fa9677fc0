# File: tests/conftest.py
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import pytest
from aiohttp import web

from indie_scout.config import CrawlerConfig
from indie_scout.crawler.models import CrawlResult
from indie_scout.parser.html_parser import ExtractedContent

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


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


class FakeClock:
    """Monotonic clock plus matching sleep that only advances time."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeBatchCrawler:
    """Stands in for SiteCrawler.crawl_many with canned results keyed by URL."""

    def __init__(self, results: dict) -> None:
        self.results = results
        self.calls: List[tuple] = []

    async def crawl_many(
        self,
        urls: Sequence[str],
        concurrency: Optional[int] = None,
        extract_all_links: Optional[Sequence[bool]] = None,
    ) -> List[CrawlResult]:
        self.calls.append((list(urls), list(extract_all_links or [])))
        return [self.results[url] for url in urls]

    async def crawl(self, url: str, extract_all_links: bool = False) -> CrawlResult:
        return self.results[url]


def make_content(**overrides) -> ExtractedContent:
    values = dict(
        title="Notes from a small garden",
        snippet="I write about the plants I grow and the things I build at home.",
        content_length=1200,
        description="A personal notebook about gardening and tinkering.",
        language="en",
        keywords=("garden", "notes"),
    )
    values.update(overrides)
    return ExtractedContent(**values)


def success(url: str, content: ExtractedContent, crawl_time_ms: int = 120) -> CrawlResult:
    return CrawlResult(
        url=url, success=True, crawl_time_ms=crawl_time_ms, robots_allowed=True, status_code=200, content=content
    )


def failure(url: str, error: str = "Failed after 2 attempts: Timeout after 10s") -> CrawlResult:
    return CrawlResult(url=url, success=False, crawl_time_ms=50, robots_allowed=True, error=error)


@pytest.fixture()
def fast_config() -> CrawlerConfig:
    """Crawler config without politeness delays, for local test servers."""
    return CrawlerConfig(
        user_agent="IndieScoutTest/1.0",
        timeout=2.0,
        max_retries=2,
        robots_timeout=1.0,
        robots_failure_delay=0.0,
        default_delay=0.0,
        concurrency=2,
        window_pause=0.0,
    )
