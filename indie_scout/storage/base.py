"""
Repository contracts consumed by the crawl queue orchestrator.

Every method is a coroutine so that implementations backed by a network
database fit the same interface as the in-process ones shipped here.
Implementations raise :class:`StorageError` for any persistence failure.
"""
from __future__ import annotations

import abc
from datetime import datetime
from typing import Collection, Dict, Iterable, List, Optional, Set

from indie_scout.queue.models import CatalogEntry, CrawlQueueItem, QueueStatus

__all__ = ("StorageError", "QueueRepository", "CatalogRepository", "ValidationTrigger")


class StorageError(Exception):
    """A repository read or write failed."""


class QueueRepository(abc.ABC):
    """CRUD-style access to crawl queue items, keyed by URL."""

    @abc.abstractmethod
    async def fetch_eligible(self, now: datetime, limit: int, max_retries: int) -> List[CrawlQueueItem]:
        """
        Pending items with ``scheduled_for <= now`` and ``attempts < max_retries``.

        Order: URLs not yet in the catalog first, then priority descending,
        then ``scheduled_for`` ascending.
        """

    @abc.abstractmethod
    async def claim(self, urls: Collection[str], now: datetime) -> List[str]:
        """Atomically move the given pending items to ``processing``.

        Returns the URLs this call actually claimed. Items another run took
        in the meantime are left out and must not be crawled.
        """

    @abc.abstractmethod
    async def update(self, item: CrawlQueueItem) -> None:
        """Overwrite the stored item with the same URL."""

    @abc.abstractmethod
    async def get_by_url(self, url: str) -> Optional[CrawlQueueItem]: ...

    @abc.abstractmethod
    async def add_many(self, items: Iterable[CrawlQueueItem]) -> int:
        """Insert items, silently skipping URLs already queued. Returns the number inserted."""

    @abc.abstractmethod
    async def count_pending(self) -> int: ...

    @abc.abstractmethod
    async def existing_urls(self, urls: Collection[str]) -> Set[str]: ...

    @abc.abstractmethod
    async def delete_completed_before(self, cutoff: datetime) -> int:
        """Delete completed items whose last attempt is older than *cutoff*."""

    @abc.abstractmethod
    async def counts_by_status(self) -> Dict[QueueStatus, int]: ...

    @abc.abstractmethod
    async def oldest_pending(self) -> Optional[datetime]:
        """Earliest ``scheduled_for`` among pending items."""

    @abc.abstractmethod
    async def newest_completed(self) -> Optional[datetime]:
        """Latest ``last_attempt`` among completed items."""

    @abc.abstractmethod
    async def list_items(
        self, status: Optional[QueueStatus] = None, limit: int = 20, offset: int = 0
    ) -> List[CrawlQueueItem]:
        """Page through items, highest priority and earliest schedule first."""

    @abc.abstractmethod
    async def reset_failed(self) -> int:
        """Move every failed item back to pending with zero attempts."""


class CatalogRepository(abc.ABC):
    """Narrow write contract over the external site catalog."""

    @abc.abstractmethod
    async def get_by_url(self, url: str) -> Optional[CatalogEntry]: ...

    @abc.abstractmethod
    async def create(self, entry: CatalogEntry) -> None: ...

    @abc.abstractmethod
    async def update(self, entry: CatalogEntry) -> None: ...

    @abc.abstractmethod
    async def existing_urls(self, urls: Collection[str]) -> Set[str]: ...

    @abc.abstractmethod
    async def mark_crawl_failed(self, url: str, when: datetime) -> None:
        """Set ``crawl_status=failed`` on the entry for *url*, if any."""


class ValidationTrigger(abc.ABC):
    """Tells the downstream validation process to re-evaluate new catalog entries."""

    @abc.abstractmethod
    async def notify(self) -> None: ...
