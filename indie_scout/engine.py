# File: indie_scout/engine.py
"""indie_scout.engine: сборка компонентов и запуск прогонов очереди для CLI и тестов."""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Tuple

from indie_scout.aggregator import BatchReport
from indie_scout.config import CrawlerConfig, load_config
from indie_scout.crawler.crawler import SiteCrawler
from indie_scout.logger import logger
from indie_scout.queue.models import CrawlQueueItem, QueueStatus
from indie_scout.queue.operations import (
    DryRunResult,
    EnqueueResult,
    QueueStats,
    browse_queue,
    cleanup_completed,
    dry_run,
    enqueue_urls,
    queue_stats,
    retry_failed,
)
from indie_scout.queue.orchestrator import CrawlQueueOrchestrator
from indie_scout.queue.trigger import HttpValidationTrigger, LoggingValidationTrigger
from indie_scout.scoring.classifier import DomainClassifier
from indie_scout.scoring.quality import QualityScorer
from indie_scout.storage.base import CatalogRepository, QueueRepository, ValidationTrigger
from indie_scout.storage.memory import MemoryCatalogRepository, MemoryQueueRepository
from indie_scout.storage.sqlite import SQLiteCatalogRepository, SQLiteQueueRepository, SQLiteStore

__all__ = ["Engine", "build_repositories"]


def build_repositories(config: CrawlerConfig) -> Tuple[QueueRepository, CatalogRepository]:
    """SQLite-репозитории, если в конфиге задан путь к базе, иначе in-memory."""
    if config.database is not None:
        store = SQLiteStore(config.database)
        return SQLiteQueueRepository(store), SQLiteCatalogRepository(store)
    catalog = MemoryCatalogRepository()
    return MemoryQueueRepository(catalog=catalog), catalog


class Engine:
    """Фасад для CLI и тестов: загрузка конфига, прогон очереди, административные операции."""

    @staticmethod
    def load_config(path: Optional[str]) -> CrawlerConfig:
        """Загружает конфиг из YAML/JSON или использует значения по умолчанию."""
        return load_config(path)

    def __init__(
        self,
        config: CrawlerConfig,
        *,
        queue: Optional[QueueRepository] = None,
        catalog: Optional[CatalogRepository] = None,
        scorer: Optional[QualityScorer] = None,
        trigger: Optional[ValidationTrigger] = None,
    ) -> None:
        self.config = config
        if queue is None or catalog is None:
            queue, catalog = build_repositories(config)
        self.queue = queue
        self.catalog = catalog
        self.scorer = scorer or QualityScorer(DomainClassifier())
        if trigger is None:
            webhook = config.queue.validation_webhook
            trigger = HttpValidationTrigger(webhook) if webhook else LoggingValidationTrigger()
        self.trigger = trigger

    def run_batch(self) -> BatchReport:
        """Один прогон очереди с ограничением по времени ``queue.batch_timeout``."""
        logger.info("Starting crawl batch…")

        async def _runner() -> BatchReport:
            async with SiteCrawler(self.config.for_worker()) as crawler:
                orchestrator = CrawlQueueOrchestrator(
                    self.queue,
                    self.catalog,
                    crawler,
                    self.scorer,
                    config=self.config.queue,
                    trigger=self.trigger,
                )
                return await orchestrator.run_batch()

        try:
            return asyncio.run(asyncio.wait_for(_runner(), timeout=self.config.queue.batch_timeout))
        except asyncio.TimeoutError:
            logger.error("Crawl batch did not finish within %s seconds", self.config.queue.batch_timeout)
            raise

    def test_url(self, url: str) -> DryRunResult:
        """Обход и оценка одного URL без записи в очередь и каталог."""

        async def _runner() -> DryRunResult:
            async with SiteCrawler(self.config) as crawler:
                return await dry_run(url, crawler, self.scorer, self.catalog)

        return asyncio.run(_runner())

    def stats(self) -> QueueStats:
        return asyncio.run(queue_stats(self.queue))

    def browse(
        self, status: Optional[QueueStatus] = None, page: int = 1, page_size: int = 20
    ) -> List[CrawlQueueItem]:
        return asyncio.run(browse_queue(self.queue, status=status, page=page, page_size=page_size))

    def enqueue(self, urls: Iterable[str], *, priority: int = 5, extract_all_links: bool = False) -> EnqueueResult:
        return asyncio.run(
            enqueue_urls(self.queue, urls, priority=priority, extract_all_links=extract_all_links)
        )

    def retry_failed(self) -> int:
        return asyncio.run(retry_failed(self.queue))

    def cleanup(self, retention_days: Optional[int] = None) -> int:
        days = retention_days if retention_days is not None else self.config.queue.retention_days
        return asyncio.run(cleanup_completed(self.queue, days))
