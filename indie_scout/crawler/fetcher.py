# indie_scout/crawler/fetcher.py
"""
Fetcher module: one HTTP GET with timeout, size cap, content-type guard and
bounded retry with exponential backoff on transport failures.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from indie_scout.crawler.models import ContentPolicyError, FetchedPage, FetchError, TransportError

__all__ = ("FetchRetryEngine", "backoff_seconds")

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_BODY_BYTES = 5 * 1024 * 1024
BACKOFF_BASE_MS = 1000
BACKOFF_CAP_MS = 5000
_CHUNK_SIZE = 8192
_ACCEPT = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.5"


def backoff_seconds(attempt: int) -> float:
    """``min(1000 * 2**attempt, 5000)`` milliseconds, as seconds."""
    return min(BACKOFF_BASE_MS * 2**attempt, BACKOFF_CAP_MS) / 1000


class FetchRetryEngine:
    """Handles HTTP fetching with retries/backoff, timeout and body limits."""

    def __init__(
        self,
        session: ClientSession,
        user_agent: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
        accept_language: str = "en-US,en;q=0.9,*;q=0.5",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.session = session
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_body_bytes = max_body_bytes
        self.headers: Dict[str, str] = {
            "User-Agent": user_agent,
            "Accept": _ACCEPT,
            "Accept-Language": accept_language,
        }
        self._sleep = sleep
        self.logger = logging.getLogger("IndieScout")

    async def fetch(self, url: str) -> FetchedPage:
        """
        Fetch *url*, retrying transport failures only.

        Raises ContentPolicyError straight away, or TransportError once
        ``max_retries`` attempts have failed.
        """
        attempt = 0
        while True:
            try:
                return await self._fetch_once(url)
            except TransportError as exc:
                if attempt + 1 >= self.max_retries:
                    raise TransportError(
                        f"Failed after {self.max_retries} attempts: {exc}", status_code=exc.status_code
                    ) from exc
                backoff = backoff_seconds(attempt)
                self.logger.debug(
                    "Retry %d/%d for %s after %.2f s: %s", attempt + 1, self.max_retries, url, backoff, exc
                )
                await self._sleep(backoff)
                attempt += 1

    async def _fetch_once(self, url: str) -> FetchedPage:
        try:
            async with self.session.get(
                url,
                headers=self.headers,
                timeout=ClientTimeout(total=self.timeout),
                allow_redirects=True,
            ) as resp:
                status = resp.status
                if not 200 <= status < 300:
                    raise ContentPolicyError(f"HTTP {status}", status_code=status)

                mime = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                if mime != "text/html":
                    raise ContentPolicyError(f"Unsupported content type: {mime or 'unknown'}", status_code=status)

                declared = resp.content_length
                if declared is not None and declared > self.max_body_bytes:
                    raise ContentPolicyError(
                        f"Content too large: {declared} bytes (limit {self.max_body_bytes})", status_code=status
                    )

                body = await self._read_limited(resp.content.iter_chunked(_CHUNK_SIZE), status)
                html = _decode(body, resp.charset)
                return FetchedPage(url=str(resp.url), status_code=status, html=html, content_type=mime)
        except FetchError:
            raise
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Timeout after {self.timeout:g}s") from exc
        except ClientError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        except (ValueError, UnicodeError) as exc:
            # yarl/idna reject some hosts only at request time
            raise ContentPolicyError(f"Invalid URL: {exc}") from exc

    async def _read_limited(self, chunks, status: int) -> bytes:
        """Read the streamed body, aborting once the running total passes the cap."""
        parts: list[bytes] = []
        total = 0
        async for chunk in chunks:
            total += len(chunk)
            if total > self.max_body_bytes:
                raise ContentPolicyError(
                    f"Content too large: exceeded {self.max_body_bytes} bytes while streaming", status_code=status
                )
            parts.append(chunk)
        return b"".join(parts)


def _decode(body: bytes, charset: Optional[str]) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")
