"""Validation triggers that notify the catalog's auto-validation process."""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from indie_scout.storage.base import ValidationTrigger

__all__ = ("HttpValidationTrigger", "LoggingValidationTrigger")

logger = logging.getLogger("IndieScout")


class HttpValidationTrigger(ValidationTrigger):
    """POSTs to a webhook. Any failure is logged and swallowed by the caller."""

    def __init__(self, endpoint: str, *, session: Optional[aiohttp.ClientSession] = None, timeout: float = 5.0) -> None:
        self.endpoint = endpoint
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def notify(self) -> None:
        if self._session is not None:
            await self._post(self._session)
            return
        async with aiohttp.ClientSession() as session:
            await self._post(session)

    async def _post(self, session: aiohttp.ClientSession) -> None:
        async with session.post(self.endpoint, json={"source": "crawler"}, timeout=self._timeout) as resp:
            resp.raise_for_status()
        logger.info("Validation run requested at %s", self.endpoint)


class LoggingValidationTrigger(ValidationTrigger):
    """Used when no webhook is configured."""

    async def notify(self) -> None:
        logger.info("New catalog entries are waiting for validation")
