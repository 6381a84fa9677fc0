"""
Administrative operations over the crawl queue: statistics, browsing,
manual enqueue, retries, retention and single-URL dry runs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from indie_scout.crawler.models import CrawlResult
from indie_scout.queue.models import CrawlQueueItem, QueueStatus, utc_now
from indie_scout.scoring.quality import QualityScore, QualityScorer
from indie_scout.storage.base import CatalogRepository, QueueRepository
from indie_scout.utils import is_valid_url, normalize_url, remove_duplicates

__all__ = (
    "QueueStats",
    "EnqueueResult",
    "DryRunAction",
    "DryRunResult",
    "queue_stats",
    "browse_queue",
    "enqueue_urls",
    "retry_failed",
    "cleanup_completed",
    "dry_run",
)

logger = logging.getLogger("IndieScout")

MANUAL_PRIORITY = 5


@dataclass(frozen=True, slots=True)
class QueueStats:
    pending: int
    processing: int
    completed: int
    failed: int
    oldest_pending: Optional[datetime] = None
    newest_completed: Optional[datetime] = None

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
            "oldest_pending": self.oldest_pending.isoformat() if self.oldest_pending else None,
            "newest_completed": self.newest_completed.isoformat() if self.newest_completed else None,
        }


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    added: int
    already_queued: int
    invalid: List[str]


class DryRunAction(str, Enum):
    ADDED_FOR_VALIDATION = "added_for_validation"
    UPDATED_EXISTING = "updated_existing"
    REJECTED_LOW_SCORE = "rejected_low_score"
    CRAWL_FAILED = "crawl_failed"


@dataclass(frozen=True, slots=True)
class DryRunResult:
    url: str
    crawl: CrawlResult
    action: DryRunAction
    score: Optional[QualityScore] = None

    def to_dict(self) -> Dict[str, Any]:
        content = self.crawl.content
        return {
            "url": self.url,
            "action": self.action.value,
            "crawl": {
                "success": self.crawl.success,
                "status_code": self.crawl.status_code,
                "crawl_time_ms": self.crawl.crawl_time_ms,
                "robots_allowed": self.crawl.robots_allowed,
                "error": self.crawl.error,
            },
            "content": content.to_dict() if content else None,
            "score": self.score.to_dict() if self.score else None,
        }


async def queue_stats(queue: QueueRepository) -> QueueStats:
    counts = await queue.counts_by_status()
    return QueueStats(
        pending=counts.get(QueueStatus.PENDING, 0),
        processing=counts.get(QueueStatus.PROCESSING, 0),
        completed=counts.get(QueueStatus.COMPLETED, 0),
        failed=counts.get(QueueStatus.FAILED, 0),
        oldest_pending=await queue.oldest_pending(),
        newest_completed=await queue.newest_completed(),
    )


async def browse_queue(
    queue: QueueRepository,
    status: Optional[QueueStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> List[CrawlQueueItem]:
    """Страница элементов очереди, нумерация страниц с 1."""
    if page < 1 or page_size < 1:
        raise ValueError("page and page_size must be positive")
    return await queue.list_items(status=status, limit=page_size, offset=(page - 1) * page_size)


async def enqueue_urls(
    queue: QueueRepository,
    urls: Iterable[str],
    *,
    priority: int = MANUAL_PRIORITY,
    extract_all_links: bool = False,
    now: Optional[datetime] = None,
) -> EnqueueResult:
    """Manual enqueue: immediately eligible, duplicates and malformed URLs skipped."""
    now = now or utc_now()
    valid: List[str] = []
    invalid: List[str] = []
    for raw in urls:
        url = raw.strip()
        if is_valid_url(url):
            valid.append(normalize_url(url))
        else:
            invalid.append(raw)
    valid = remove_duplicates(valid)

    existing = await queue.existing_urls(valid)
    items = [
        CrawlQueueItem(
            url=url,
            priority=priority,
            scheduled_for=now,
            extract_all_links=extract_all_links,
            created_at=now,
        )
        for url in valid
        if url not in existing
    ]
    added = await queue.add_many(items)
    logger.info("Enqueued %d URLs (%d already queued, %d invalid)", added, len(existing), len(invalid))
    return EnqueueResult(added=added, already_queued=len(existing), invalid=invalid)


async def retry_failed(queue: QueueRepository) -> int:
    count = await queue.reset_failed()
    logger.info("Reset %d failed items to pending", count)
    return count


async def cleanup_completed(
    queue: QueueRepository, retention_days: int, now: Optional[datetime] = None
) -> int:
    cutoff = (now or utc_now()) - timedelta(days=retention_days)
    deleted = await queue.delete_completed_before(cutoff)
    logger.info("Deleted %d completed items older than %s", deleted, cutoff.isoformat())
    return deleted


async def dry_run(url: str, crawler: Any, scorer: QualityScorer, catalog: CatalogRepository) -> DryRunResult:
    """
    Crawl and score one URL without touching the queue or writing the catalog.
    ``crawler`` is an entered :class:`~indie_scout.crawler.crawler.SiteCrawler`.
    """
    result = await crawler.crawl(url)
    if not result.success or result.content is None:
        return DryRunResult(url=url, crawl=result, action=DryRunAction.CRAWL_FAILED)

    score = scorer.assess(result.content, url)
    if await catalog.get_by_url(url) is not None:
        action = DryRunAction.UPDATED_EXISTING
    elif score.should_auto_submit:
        action = DryRunAction.ADDED_FOR_VALIDATION
    else:
        action = DryRunAction.REJECTED_LOW_SCORE
    return DryRunResult(url=url, crawl=result, action=action, score=score)
