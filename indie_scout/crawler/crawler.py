# === FILE: indie_scout/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence

from aiohttp import ClientSession

from indie_scout.config import CrawlerConfig
from indie_scout.crawler.fetcher import FetchRetryEngine
from indie_scout.crawler.models import INVALID_URL, ROBOTS_DISALLOWED, CrawlResult, FetchError
from indie_scout.crawler.rate_limiter import DomainRateLimiter
from indie_scout.crawler.robots import RobotsPolicyResolver
from indie_scout.parser.html_parser import ContentExtractor
from indie_scout.utils import is_valid_url

__all__ = ("SiteCrawler",)


class SiteCrawler:
    """Политичный краулер одного URL: robots.txt, rate-limit, retry, извлечение контента.

    Состояние по origin (кеш robots.txt и таймстемпы rate-limit) принадлежит
    экземпляру, поэтому независимые краулеры друг другу не мешают.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        *,
        session: Optional[ClientSession] = None,
        resolver: Optional[RobotsPolicyResolver] = None,
        limiter: Optional[DomainRateLimiter] = None,
        extractor: Optional[ContentExtractor] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or CrawlerConfig()
        self.session = session
        self._owns_session = session is None
        self.resolver = resolver
        self.limiter = limiter or DomainRateLimiter(self.config.default_delay, sleep=sleep)
        self.extractor = extractor or ContentExtractor()
        self.fetcher: Optional[FetchRetryEngine] = None
        self._clock = clock
        self._sleep = sleep
        self.logger = logging.getLogger("IndieScout")

    async def __aenter__(self) -> SiteCrawler:
        if self.session is None:
            self.session = ClientSession(raise_for_status=False)
            self._owns_session = True
        if self.resolver is None:
            self.resolver = RobotsPolicyResolver(
                self.session,
                timeout=self.config.robots_timeout,
                cache_ttl=self.config.robots_cache_ttl,
                failure_delay=self.config.robots_failure_delay,
                default_delay=self.config.default_delay,
            )
        self.fetcher = FetchRetryEngine(
            self.session,
            self.config.user_agent,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
            max_body_bytes=self.config.max_body_bytes,
            accept_language=self.config.accept_language,
            sleep=self._sleep,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)

    async def crawl(self, url: str, extract_all_links: bool = False) -> CrawlResult:
        """Обходит один URL. Никогда не бросает исключения для отдельного URL."""
        if self.fetcher is None or self.resolver is None:
            raise RuntimeError("SiteCrawler must be used as an async context manager")

        start = self._clock()
        if not is_valid_url(url):
            return CrawlResult(url=url, success=False, crawl_time_ms=0, robots_allowed=False, error=INVALID_URL)

        decision = await self.resolver.resolve(url, self.config.user_agent)
        if not decision.allowed:
            self.logger.info("Blocked by robots.txt: %s", url)
            return CrawlResult(
                url=url,
                success=False,
                crawl_time_ms=self._elapsed_ms(start),
                robots_allowed=False,
                error=ROBOTS_DISALLOWED,
                robots_delay=decision.crawl_delay,
            )

        await self.limiter.throttle(url, decision.crawl_delay)

        try:
            page = await self.fetcher.fetch(url)
        except FetchError as exc:
            self.logger.warning("Failed %s: %s", url, exc)
            return CrawlResult(
                url=url,
                success=False,
                crawl_time_ms=self._elapsed_ms(start),
                robots_allowed=True,
                status_code=exc.status_code,
                error=str(exc),
                robots_delay=decision.crawl_delay,
            )

        try:
            content = self.extractor.extract(page.html, page.url, extract_all_links=extract_all_links)
        except Exception as exc:  # noqa: BLE001 - a broken document fails only this URL
            self.logger.warning("Extraction failed for %s: %s", url, exc)
            return CrawlResult(
                url=url,
                success=False,
                crawl_time_ms=self._elapsed_ms(start),
                robots_allowed=True,
                status_code=page.status_code,
                error=f"Extraction failed: {exc}",
                robots_delay=decision.crawl_delay,
            )

        return CrawlResult(
            url=url,
            success=True,
            crawl_time_ms=self._elapsed_ms(start),
            robots_allowed=True,
            status_code=page.status_code,
            content=content,
            robots_delay=decision.crawl_delay,
        )

    async def crawl_many(
        self,
        urls: Sequence[str],
        concurrency: Optional[int] = None,
        extract_all_links: Optional[Sequence[bool]] = None,
    ) -> List[CrawlResult]:
        """
        Обходит URL окнами фиксированного размера.

        Каждое окно выполняется параллельно, следующее начинается только после
        завершения предыдущего и короткой паузы. Порядок результатов совпадает
        с порядком *urls*. *extract_all_links* задаёт флаг для каждого URL.
        """
        window = self.config.concurrency if concurrency is None else concurrency
        if window < 1:
            raise ValueError("concurrency must be >= 1")
        flags = list(extract_all_links) if extract_all_links is not None else [False] * len(urls)
        if len(flags) != len(urls):
            raise ValueError("extract_all_links must match urls in length")

        self.logger.info("Crawling %d URLs, window %d", len(urls), window)
        start = self._clock()
        results: List[CrawlResult] = []
        for offset in range(0, len(urls), window):
            if offset:
                await self._sleep(self.config.window_pause)
            batch = list(zip(urls[offset : offset + window], flags[offset : offset + window]))
            outcomes = await asyncio.gather(*(self.crawl(u, f) for u, f in batch), return_exceptions=True)
            for (url, _), outcome in zip(batch, outcomes):
                results.append(self._as_result(url, outcome))

        ok = sum(1 for r in results if r.success)
        self.logger.info(
            "Crawled %d URLs (%d ok, %d failed) in %.2f s", len(results), ok, len(results) - ok, self._clock() - start
        )
        return results

    def _as_result(self, url: str, outcome) -> CrawlResult:
        """Превращает исключение из gather в неудачный CrawlResult для этого URL."""
        if isinstance(outcome, CrawlResult):
            return outcome
        if not isinstance(outcome, Exception):
            raise outcome
        self.logger.warning("Crawl of %s raised %s: %s", url, type(outcome).__name__, outcome)
        return CrawlResult(
            url=url,
            success=False,
            crawl_time_ms=0,
            robots_allowed=False,
            error=f"Crawl failed: {outcome}",
        )
