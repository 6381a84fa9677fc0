"""
Robots policy resolver: fetches robots.txt per origin, caches parsed rules
and answers allow/deny plus crawl-delay for individual URLs.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

from aiohttp import ClientError, ClientSession, ClientTimeout

from indie_scout.crawler.models import RobotsDecision
from indie_scout.parser.robots_parser import RobotsTxt, parse_robots
from indie_scout.utils import extract_origin

__all__ = ("RobotsPolicyResolver",)

ROBOTS_TIMEOUT_SECONDS = 5.0
ROBOTS_CACHE_TTL_SECONDS = 24 * 3600.0
ROBOTS_FAILURE_TTL_SECONDS = 3600.0
ROBOTS_FAILURE_DELAY_SECONDS = 2.0
DEFAULT_CRAWL_DELAY_SECONDS = 1.0
_MAX_ROBOTS_BYTES = 512 * 1024


@dataclass(slots=True)
class _CacheEntry:
    robots: Optional[RobotsTxt]
    expires_at: float


class RobotsPolicyResolver:
    """Per-origin robots.txt cache owned by one crawler instance.

    A missing, unreachable or non-2xx robots.txt means "allowed, but slowly":
    the decision carries ``failure_delay`` instead of the default delay.
    """

    def __init__(
        self,
        session: ClientSession,
        *,
        timeout: float = ROBOTS_TIMEOUT_SECONDS,
        cache_ttl: float = ROBOTS_CACHE_TTL_SECONDS,
        failure_ttl: float = ROBOTS_FAILURE_TTL_SECONDS,
        failure_delay: float = ROBOTS_FAILURE_DELAY_SECONDS,
        default_delay: float = DEFAULT_CRAWL_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.failure_ttl = min(failure_ttl, cache_ttl)
        self.failure_delay = failure_delay
        self.default_delay = default_delay
        self._clock = clock
        self._cache: Dict[str, _CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.logger = logging.getLogger("IndieScout")

    async def resolve(self, url: str, user_agent: str) -> RobotsDecision:
        origin = extract_origin(url)
        if origin is None:
            return RobotsDecision(allowed=True, crawl_delay=self.failure_delay, user_agent=user_agent)

        robots = await self._get_rules(origin, user_agent)
        if robots is None:
            return RobotsDecision(allowed=True, crawl_delay=self.failure_delay, user_agent=user_agent)

        rules = robots.rules_for(user_agent)
        if rules is None:
            return RobotsDecision(allowed=True, crawl_delay=self.default_delay, user_agent=user_agent)

        parsed = urlparse(url)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        delay = rules.crawl_delay if rules.crawl_delay is not None else self.default_delay
        return RobotsDecision(allowed=rules.is_allowed(path), crawl_delay=delay, user_agent=user_agent)

    def clear_cache(self) -> None:
        self._cache.clear()

    def cached_origins(self) -> list[str]:
        now = self._clock()
        return [origin for origin, entry in self._cache.items() if entry.expires_at > now]

    async def _get_rules(self, origin: str, user_agent: str) -> Optional[RobotsTxt]:
        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            entry = self._cache.get(origin)
            if entry is not None and entry.expires_at > self._clock():
                return entry.robots

            robots = await self._fetch(origin, user_agent)
            ttl = self.cache_ttl if robots is not None else self.failure_ttl
            self._cache[origin] = _CacheEntry(robots=robots, expires_at=self._clock() + ttl)
            return robots

    async def _fetch(self, origin: str, user_agent: str) -> Optional[RobotsTxt]:
        robots_url = f"{origin}/robots.txt"
        try:
            async with self.session.get(
                robots_url,
                headers={"User-Agent": user_agent},
                timeout=ClientTimeout(total=self.timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    self.logger.debug("robots.txt %s -> HTTP %s", robots_url, resp.status)
                    return None
                raw = await resp.content.read(_MAX_ROBOTS_BYTES)
                text = raw.decode(resp.charset or "utf-8", errors="replace")
        except (ClientError, asyncio.TimeoutError, ValueError, LookupError) as exc:
            self.logger.warning("Error loading robots.txt %s: %s", robots_url, exc)
            return None
        return parse_robots(text)
