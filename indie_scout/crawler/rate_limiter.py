"""
Per-origin politeness: at most one courtesy window in flight per origin.
"""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional

from indie_scout.utils import extract_origin

__all__ = ("DomainRateLimiter",)

DEFAULT_DELAY_SECONDS = 1.0


class DomainRateLimiter:
    """Track last fetch time and effective delay per origin.

    The delay learned from robots.txt is sticky: once an origin reports a
    crawl delay it keeps it for the lifetime of the limiter. Waiting for one
    origin never blocks callers for another.
    """

    def __init__(
        self,
        default_delay: float = DEFAULT_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if default_delay < 0:
            raise ValueError("default_delay must be >= 0")
        self.default_delay = default_delay
        self._clock = clock
        self._sleep = sleep
        self._last_fetch: Dict[str, float] = {}
        self._delays: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def effective_delay(self, origin: str) -> float:
        return self._delays.get(origin, self.default_delay)

    def last_fetch_at(self, origin: str) -> Optional[float]:
        return self._last_fetch.get(origin)

    async def throttle(self, url: str, delay_hint: Optional[float] = None) -> float:
        """Wait until *url*'s origin may be fetched again, then stamp it.

        Returns the number of seconds actually waited.
        """
        origin = extract_origin(url) or url
        if delay_hint is not None and delay_hint >= 0:
            self._delays[origin] = delay_hint

        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            delay = self.effective_delay(origin)
            waited = 0.0
            last = self._last_fetch.get(origin)
            if last is not None:
                remaining = delay - (self._clock() - last)
                if remaining > 0:
                    await self._sleep(remaining)
                    waited = remaining
            self._last_fetch[origin] = self._clock()
            return waited
