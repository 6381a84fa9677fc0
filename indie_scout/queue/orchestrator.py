# File: indie_scout/queue/orchestrator.py
"""indie_scout.queue.orchestrator: один прогон очереди обхода от выборки до отчёта."""

from __future__ import annotations

import random
import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol, Sequence

from indie_scout.aggregator import BatchReport
from indie_scout.config import QueueConfig
from indie_scout.crawler.models import CrawlResult
from indie_scout.logger import logger
from indie_scout.parser.html_parser import UNTITLED, ExtractedContent
from indie_scout.queue.models import CatalogEntry, CrawlQueueItem, CrawlStatus, QueueStatus, utc_now
from indie_scout.scoring.classifier import IndexingPurpose
from indie_scout.scoring.quality import QualityScore, QualityScorer
from indie_scout.scoring.signals import validation_tier
from indie_scout.storage.base import (
    CatalogRepository,
    QueueRepository,
    StorageError,
    ValidationTrigger,
)

__all__ = ["BatchCrawler", "CrawlQueueOrchestrator", "retry_delay"]

DISCOVERY_METHOD = "crawler_auto_submit"


class BatchCrawler(Protocol):
    async def crawl_many(
        self,
        urls: Sequence[str],
        concurrency: Optional[int] = None,
        extract_all_links: Optional[Sequence[bool]] = None,
    ) -> List[CrawlResult]: ...


def retry_delay(attempts: int, base_minutes: float) -> timedelta:
    """Задержка повтора после ``attempts`` неудачных попыток: base * 2^attempts минут."""
    return timedelta(minutes=base_minutes * (2 ** attempts))


class CrawlQueueOrchestrator:
    """
    Выбирает готовые элементы очереди, обходит их, оценивает и записывает
    результат в каталог и очередь.

    Ошибки хранилища при выборке прерывают прогон; ошибки при обработке
    одного элемента попадают в ``report.errors`` и не мешают остальным.
    Часы и генератор случайных чисел подменяются в тестах.
    """

    def __init__(
        self,
        queue: QueueRepository,
        catalog: CatalogRepository,
        crawler: BatchCrawler,
        scorer: QualityScorer,
        *,
        config: Optional[QueueConfig] = None,
        trigger: Optional[ValidationTrigger] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.queue = queue
        self.catalog = catalog
        self.crawler = crawler
        self.scorer = scorer
        self.config = config or QueueConfig()
        self.trigger = trigger
        self.clock = clock
        self.rng = rng or random.Random()

    async def run_batch(self) -> BatchReport:
        started = time.monotonic()
        now = self.clock()
        report = BatchReport(started_at=now)

        try:
            items = await self.queue.fetch_eligible(now, self.config.batch_size, self.config.max_retries)
            if items:
                claimed = set(await self.queue.claim([item.url for item in items], now))
                if len(claimed) < len(items):
                    logger.info("%d items already claimed by another run, skipping", len(items) - len(claimed))
                items = [item for item in items if item.url in claimed]
        except StorageError as exc:
            logger.error("Queue selection failed: %s", exc)
            report.errors.append(f"Queue selection failed: {exc}")
            report.aborted = True
            report.duration_ms = int((time.monotonic() - started) * 1000)
            return report

        if not items:
            logger.info("Crawl queue is empty, nothing to do")
            report.duration_ms = int((time.monotonic() - started) * 1000)
            return report

        logger.info("Processing %d queue items", len(items))
        unfinished = {item.url: item for item in items}
        try:
            results = await self.crawler.crawl_many(
                [item.url for item in items],
                extract_all_links=[item.extract_all_links for item in items],
            )

            for item, result in zip(items, results):
                report.processed += 1
                try:
                    if result.success and result.content is not None:
                        await self._handle_success(item, result, report)
                    else:
                        await self._handle_failure(item, result, report)
                except StorageError as exc:
                    message = f"Database error for {item.url}: {exc}"
                    logger.error(message)
                    report.errors.append(message)
                    report.failed += 1
                    await self._mark_failed_quietly(item, message)
                del unfinished[item.url]
        finally:
            # cancelled or crashed runs must not leave items stuck in processing
            if unfinished:
                await self._release(list(unfinished.values()))

        if report.auto_submitted and self.trigger is not None:
            try:
                await self.trigger.notify()
            except Exception as exc:  # noqa: BLE001 - notification never fails a batch
                logger.warning("Validation trigger failed: %s", exc)

        report.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("Batch finished: %s", report.summary())
        return report

    # ------------------------------------------------------------------ #
    # outcomes                                                           #
    # ------------------------------------------------------------------ #

    async def _handle_success(self, item: CrawlQueueItem, result: CrawlResult, report: BatchReport) -> None:
        content = result.content
        now = self.clock()
        score = self.scorer.assess(content, item.url)
        report.record_score(item.url, score)

        existing = await self.catalog.get_by_url(item.url)
        if existing is not None:
            await self.catalog.update(self._refreshed_entry(existing, content, result, now))
            report.updated += 1
            report.discovered += await self._queue_discovered(content.links, item.extract_all_links, now)
            logger.info("Updated catalog entry %s (score %d)", item.url, score.total_score)
        elif score.should_auto_submit:
            await self.catalog.create(self._new_entry(item.url, content, result, score, now))
            report.auto_submitted += 1
            logger.info("Auto-submitted %s (score %d)", item.url, score.total_score)
        elif score.indexing_purpose is IndexingPurpose.LINK_EXTRACTION:
            report.discovered += await self._queue_discovered(content.links, item.extract_all_links, now)
            logger.info("Harvested links from %s", item.url)
        else:
            logger.info("Rejected %s (score %d): %s", item.url, score.total_score, score.reasons[-1])

        await self.queue.update(
            replace(item, status=QueueStatus.COMPLETED, last_attempt=now, error_message=None)
        )
        report.successful += 1

    async def _handle_failure(self, item: CrawlQueueItem, result: CrawlResult, report: BatchReport) -> None:
        now = self.clock()
        attempts = item.attempts + 1
        error = result.error or "Unknown crawl error"

        if attempts >= self.config.max_retries:
            await self.queue.update(
                replace(
                    item,
                    status=QueueStatus.FAILED,
                    attempts=attempts,
                    last_attempt=now,
                    error_message=error,
                )
            )
            await self.catalog.mark_crawl_failed(item.url, now)
            report.failed += 1
            logger.warning("Giving up on %s after %d attempts: %s", item.url, attempts, error)
            return

        await self.queue.update(
            replace(
                item,
                status=QueueStatus.PENDING,
                attempts=attempts,
                last_attempt=now,
                scheduled_for=now + retry_delay(attempts, self.config.backoff_base_minutes),
                error_message=error,
            )
        )
        report.skipped += 1
        logger.info("Rescheduled %s (attempt %d): %s", item.url, attempts, error)

    async def _release(self, items: List[CrawlQueueItem]) -> None:
        """Возвращает захваченные, но не обработанные элементы в ``pending``."""
        logger.warning("Returning %d unfinished items to the queue", len(items))
        for item in items:
            try:
                # snapshot from before the claim, status is still pending
                await self.queue.update(item)
            except StorageError as exc:
                logger.error("Could not release %s: %s", item.url, exc)

    async def _mark_failed_quietly(self, item: CrawlQueueItem, message: str) -> None:
        try:
            await self.queue.update(
                replace(item, status=QueueStatus.FAILED, last_attempt=self.clock(), error_message=message)
            )
        except StorageError as exc:
            logger.error("Could not mark %s as failed: %s", item.url, exc)

    # ------------------------------------------------------------------ #
    # catalog records                                                    #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _refreshed_entry(
        existing: CatalogEntry, content: ExtractedContent, result: CrawlResult, now: datetime
    ) -> CatalogEntry:
        title = content.title if content.title and content.title != UNTITLED else existing.title
        return replace(
            existing,
            title=title,
            description=content.description or content.snippet or existing.description,
            crawl_status=CrawlStatus.SUCCESS,
            last_crawled=now,
            extracted_keywords=content.keywords or existing.extracted_keywords,
            content_sample=content.snippet or existing.content_sample,
            detected_language=content.language or existing.detected_language,
            response_time_ms=result.crawl_time_ms,
            ssl_enabled=result.url.startswith("https://"),
            outbound_links=content.links,
        )

    @staticmethod
    def _new_entry(
        url: str, content: ExtractedContent, result: CrawlResult, score: QualityScore, now: datetime
    ) -> CatalogEntry:
        return CatalogEntry(
            url=url,
            title=content.title,
            description=content.description or content.snippet or None,
            discovery_method=DISCOVERY_METHOD,
            site_type=score.category.value,
            seeding_score=score.total_score,
            seeding_reasons=score.reasons,
            extracted_keywords=content.keywords,
            detected_language=content.language,
            content_sample=content.snippet or None,
            last_crawled=now,
            crawl_status=CrawlStatus.SUCCESS,
            ssl_enabled=url.startswith("https://"),
            outbound_links=content.links,
            discovered_at=now,
            response_time_ms=result.crawl_time_ms,
            validation_tier=validation_tier(score.total_score),
        )

    # ------------------------------------------------------------------ #
    # discovery                                                          #
    # ------------------------------------------------------------------ #

    async def _queue_discovered(self, links: Sequence[str], extract_all: bool, now: datetime) -> int:
        """Ставит найденные ссылки в очередь с учётом лимитов на сайт и на очередь."""
        cap = self.config.max_links_extract_all if extract_all else self.config.max_links_per_site
        candidates = list(dict.fromkeys(links[:cap]))
        if not candidates:
            return 0

        known = await self.catalog.existing_urls(candidates) | await self.queue.existing_urls(candidates)
        fresh = [url for url in candidates if url not in known]
        if not fresh:
            return 0

        pending = await self.queue.count_pending()
        room = self.config.max_pending - pending
        if room <= 0:
            logger.warning("Queue holds %d pending items, skipping %d discovered links", pending, len(fresh))
            return 0

        low, high = self.config.discovery_delay_hours
        items = [
            CrawlQueueItem(
                url=url,
                priority=self.config.discovery_priority,
                scheduled_for=now + timedelta(hours=self.rng.uniform(low, high)),
                created_at=now,
            )
            for url in fresh[:room]
        ]
        added = await self.queue.add_many(items)
        logger.debug("Queued %d discovered links", added)
        return added
