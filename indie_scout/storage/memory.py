"""In-process repositories, used by tests and by ``indie-scout`` without a database path."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Collection, Dict, Iterable, List, Optional, Set

from indie_scout.queue.models import CatalogEntry, CrawlQueueItem, CrawlStatus, QueueStatus
from indie_scout.storage.base import (
    CatalogRepository,
    QueueRepository,
    StorageError,
    ValidationTrigger,
)

__all__ = ("MemoryQueueRepository", "MemoryCatalogRepository", "MemoryValidationTrigger")


class MemoryCatalogRepository(CatalogRepository):
    def __init__(self, entries: Iterable[CatalogEntry] = ()) -> None:
        self.entries: Dict[str, CatalogEntry] = {e.url: e for e in entries}

    async def get_by_url(self, url: str) -> Optional[CatalogEntry]:
        return self.entries.get(url)

    async def create(self, entry: CatalogEntry) -> None:
        if entry.url in self.entries:
            raise StorageError(f"Catalog entry already exists: {entry.url}")
        self.entries[entry.url] = entry

    async def update(self, entry: CatalogEntry) -> None:
        if entry.url not in self.entries:
            raise StorageError(f"Catalog entry not found: {entry.url}")
        self.entries[entry.url] = entry

    async def existing_urls(self, urls: Collection[str]) -> Set[str]:
        return {u for u in urls if u in self.entries}

    async def mark_crawl_failed(self, url: str, when: datetime) -> None:
        entry = self.entries.get(url)
        if entry is not None:
            self.entries[url] = replace(entry, crawl_status=CrawlStatus.FAILED, last_crawled=when)


class MemoryQueueRepository(QueueRepository):
    """
    Dict-backed queue. ``catalog`` is consulted only for the
    "not yet cataloged first" ordering of :meth:`fetch_eligible`.
    """

    def __init__(
        self,
        items: Iterable[CrawlQueueItem] = (),
        catalog: Optional[MemoryCatalogRepository] = None,
    ) -> None:
        self.items: Dict[str, CrawlQueueItem] = {i.url: i for i in items}
        self.catalog = catalog

    def _is_cataloged(self, url: str) -> bool:
        return self.catalog is not None and url in self.catalog.entries

    async def fetch_eligible(self, now: datetime, limit: int, max_retries: int) -> List[CrawlQueueItem]:
        eligible = [
            i
            for i in self.items.values()
            if i.status is QueueStatus.PENDING and i.scheduled_for <= now and i.attempts < max_retries
        ]
        eligible.sort(key=lambda i: (self._is_cataloged(i.url), -i.priority, i.scheduled_for))
        return eligible[:limit]

    async def claim(self, urls: Collection[str], now: datetime) -> List[str]:
        # no await inside, so the whole claim runs without interleaving
        claimed: List[str] = []
        for url in urls:
            item = self.items.get(url)
            if item is None or item.status is not QueueStatus.PENDING:
                continue
            self.items[url] = replace(item, status=QueueStatus.PROCESSING, last_attempt=now)
            claimed.append(url)
        return claimed

    async def update(self, item: CrawlQueueItem) -> None:
        if item.url not in self.items:
            raise StorageError(f"Queue item not found: {item.url}")
        self.items[item.url] = item

    async def get_by_url(self, url: str) -> Optional[CrawlQueueItem]:
        return self.items.get(url)

    async def add_many(self, items: Iterable[CrawlQueueItem]) -> int:
        added = 0
        for item in items:
            if item.url in self.items:
                continue
            self.items[item.url] = item
            added += 1
        return added

    async def count_pending(self) -> int:
        return sum(1 for i in self.items.values() if i.status is QueueStatus.PENDING)

    async def existing_urls(self, urls: Collection[str]) -> Set[str]:
        return {u for u in urls if u in self.items}

    async def delete_completed_before(self, cutoff: datetime) -> int:
        stale = [
            url
            for url, i in self.items.items()
            if i.status is QueueStatus.COMPLETED and i.last_attempt is not None and i.last_attempt < cutoff
        ]
        for url in stale:
            del self.items[url]
        return len(stale)

    async def counts_by_status(self) -> Dict[QueueStatus, int]:
        counts = {status: 0 for status in QueueStatus}
        for item in self.items.values():
            counts[item.status] += 1
        return counts

    async def oldest_pending(self) -> Optional[datetime]:
        return min(
            (i.scheduled_for for i in self.items.values() if i.status is QueueStatus.PENDING),
            default=None,
        )

    async def newest_completed(self) -> Optional[datetime]:
        return max(
            (
                i.last_attempt
                for i in self.items.values()
                if i.status is QueueStatus.COMPLETED and i.last_attempt is not None
            ),
            default=None,
        )

    async def list_items(
        self, status: Optional[QueueStatus] = None, limit: int = 20, offset: int = 0
    ) -> List[CrawlQueueItem]:
        selected = [i for i in self.items.values() if status is None or i.status is status]
        selected.sort(key=lambda i: (-i.priority, i.scheduled_for))
        return selected[offset : offset + limit]

    async def reset_failed(self) -> int:
        failed = [i for i in self.items.values() if i.status is QueueStatus.FAILED]
        for item in failed:
            self.items[item.url] = replace(
                item, status=QueueStatus.PENDING, attempts=0, error_message=None
            )
        return len(failed)


class MemoryValidationTrigger(ValidationTrigger):
    """Counts notifications; tests assert on :attr:`calls`."""

    def __init__(self) -> None:
        self.calls = 0

    async def notify(self) -> None:
        self.calls += 1
