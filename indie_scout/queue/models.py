"""
Data models for the durable crawl queue and the catalog it feeds.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

__all__ = (
    "QueueStatus",
    "CrawlStatus",
    "CrawlQueueItem",
    "CatalogEntry",
    "utc_now",
)


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class QueueStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CrawlStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class CrawlQueueItem:
    """One unit of crawl work. ``url`` is unique across the queue.

    While ``status`` is pending, ``attempts`` stays below the configured
    retry limit; a failure that reaches the limit moves the item to
    ``failed`` for good.
    """

    url: str
    priority: int = 0
    scheduled_for: datetime = field(default_factory=utc_now)
    attempts: int = 0
    status: QueueStatus = QueueStatus.PENDING
    last_attempt: Optional[datetime] = None
    error_message: Optional[str] = None
    extract_all_links: bool = False
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """A site admitted to the catalog. Written only through the catalog repository."""

    url: str
    title: str
    description: Optional[str] = None
    discovery_method: str = "crawler_auto_submit"
    site_type: str = "other"
    seeding_score: int = 0
    seeding_reasons: Tuple[str, ...] = ()
    extracted_keywords: Tuple[str, ...] = ()
    detected_language: Optional[str] = None
    content_sample: Optional[str] = None
    last_crawled: Optional[datetime] = None
    crawl_status: CrawlStatus = CrawlStatus.PENDING
    ssl_enabled: bool = False
    outbound_links: Tuple[str, ...] = ()
    discovered_at: datetime = field(default_factory=utc_now)
    response_time_ms: Optional[int] = None
    # "auto" entries go straight to the validation run, "standard" and
    # "review" wait for more votes
    validation_tier: str = "review"
    validated: bool = False
