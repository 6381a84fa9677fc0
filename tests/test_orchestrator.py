# File: tests/test_orchestrator.py
"""Прогон очереди: выборка, исходы обхода, обнаружение ссылок, ошибки хранилища."""
import asyncio
import random
from datetime import date, timedelta

import pytest

from conftest import FIXED_NOW, FakeBatchCrawler, failure, make_content, success
from indie_scout.config import QueueConfig
from indie_scout.parser.html_parser import UNTITLED
from indie_scout.queue.models import CatalogEntry, CrawlQueueItem, CrawlStatus, QueueStatus
from indie_scout.queue.orchestrator import CrawlQueueOrchestrator, retry_delay
from indie_scout.scoring.classifier import DomainClassifier
from indie_scout.scoring.quality import QualityScorer
from indie_scout.scoring.signals import validation_tier
from indie_scout.storage import (
    MemoryCatalogRepository,
    MemoryQueueRepository,
    MemoryValidationTrigger,
    StorageError,
)

PERSONAL = "https://alice-doe.com/"
PROFILE = "https://github.com/alice"
PARKED = "https://coolname.com/"

EARLIER = FIXED_NOW - timedelta(hours=1)


def pending(url, **overrides):
    values = dict(url=url, scheduled_for=EARLIER, created_at=EARLIER)
    values.update(overrides)
    return CrawlQueueItem(**values)


def links(count, host="https://friend.example"):
    return tuple(f"{host}/page-{i}" for i in range(count))


def parked_content():
    return make_content(
        title="coolname.com",
        description=None,
        snippet="This domain is for sale! Related searches: loans, insurance",
        content_length=200,
        keywords=(),
        language=None,
        is_parked=True,
    )


class Setup:
    """Собирает оркестратор поверх in-memory репозиториев."""

    def __init__(self, items=(), entries=(), results=None, config=None):
        self.catalog = MemoryCatalogRepository(entries)
        self.queue = MemoryQueueRepository(items, catalog=self.catalog)
        self.crawler = FakeBatchCrawler(results or {})
        self.trigger = MemoryValidationTrigger()
        self.config = config or QueueConfig()
        self.orchestrator = CrawlQueueOrchestrator(
            self.queue,
            self.catalog,
            self.crawler,
            QualityScorer(DomainClassifier(), today=lambda: date(2026, 10, 19)),
            config=self.config,
            trigger=self.trigger,
            clock=lambda: FIXED_NOW,
            rng=random.Random(0),
        )

    async def run(self):
        return await self.orchestrator.run_batch()


def test_retry_delay_doubles():
    assert retry_delay(1, 5) == timedelta(minutes=10)
    assert retry_delay(2, 5) == timedelta(minutes=20)
    assert retry_delay(3, 5) == timedelta(minutes=40)


@pytest.mark.asyncio()
async def test_empty_queue_is_a_no_op():
    env = Setup()
    report = await env.run()
    assert report.processed == 0
    assert not report.aborted
    assert env.crawler.calls == []
    assert env.trigger.calls == 0


@pytest.mark.asyncio()
async def test_auto_submit_creates_catalog_entry():
    env = Setup(items=[pending(PERSONAL)], results={PERSONAL: success(PERSONAL, make_content())})
    report = await env.run()

    entry = env.catalog.entries[PERSONAL]
    assert entry.discovery_method == "crawler_auto_submit"
    assert entry.crawl_status is CrawlStatus.SUCCESS
    assert entry.last_crawled == FIXED_NOW
    assert entry.ssl_enabled
    assert entry.response_time_ms == 120
    assert entry.seeding_score >= 60
    assert entry.validation_tier == validation_tier(entry.seeding_score)
    assert entry.description == "A personal notebook about gardening and tinkering."

    item = env.queue.items[PERSONAL]
    assert item.status is QueueStatus.COMPLETED
    assert item.last_attempt == FIXED_NOW

    assert report.processed == report.successful == report.auto_submitted == 1
    assert report.scores[0]["url"] == PERSONAL
    assert env.trigger.calls == 1


@pytest.mark.asyncio()
async def test_existing_entry_is_refreshed_and_links_queued():
    existing = CatalogEntry(url=PERSONAL, title="Old title", description="Old description")
    content = make_content(title=UNTITLED, description=None, snippet="", links=links(15))
    env = Setup(items=[pending(PERSONAL)], entries=[existing], results={PERSONAL: success(PERSONAL, content)})

    report = await env.run()

    entry = env.catalog.entries[PERSONAL]
    assert entry.title == "Old title"
    assert entry.description == "Old description"
    assert entry.crawl_status is CrawlStatus.SUCCESS
    assert entry.outbound_links == links(15)
    assert report.updated == 1
    assert report.auto_submitted == 0
    assert env.trigger.calls == 0

    assert report.discovered == 10
    discovered = [i for url, i in env.queue.items.items() if url != PERSONAL]
    assert len(discovered) == 10
    for item in discovered:
        assert item.priority == 1
        assert item.status is QueueStatus.PENDING
        assert FIXED_NOW + timedelta(hours=48) <= item.scheduled_for <= FIXED_NOW + timedelta(hours=120)
        assert not item.extract_all_links


@pytest.mark.asyncio()
async def test_extract_all_links_raises_discovery_cap():
    existing = CatalogEntry(url=PERSONAL, title="Hub")
    content = make_content(links=links(150))
    env = Setup(
        items=[pending(PERSONAL, extract_all_links=True)],
        entries=[existing],
        results={PERSONAL: success(PERSONAL, content)},
    )
    report = await env.run()
    assert env.crawler.calls == [([PERSONAL], [True])]
    assert report.discovered == 100


@pytest.mark.asyncio()
async def test_known_links_are_not_requeued():
    known_in_catalog = "https://friend.example/page-0"
    known_in_queue = "https://friend.example/page-1"
    env = Setup(
        items=[pending(PERSONAL), pending(known_in_queue, scheduled_for=FIXED_NOW + timedelta(days=1))],
        entries=[CatalogEntry(url=PERSONAL, title="A"), CatalogEntry(url=known_in_catalog, title="B")],
        results={PERSONAL: success(PERSONAL, make_content(links=links(3)))},
    )
    report = await env.run()
    assert report.discovered == 1
    assert "https://friend.example/page-2" in env.queue.items


@pytest.mark.asyncio()
async def test_discovery_respects_pending_limit():
    future = FIXED_NOW + timedelta(days=1)
    env = Setup(
        items=[pending(PERSONAL), pending("https://x.example/a", scheduled_for=future),
               pending("https://x.example/b", scheduled_for=future)],
        entries=[CatalogEntry(url=PERSONAL, title="A")],
        results={PERSONAL: success(PERSONAL, make_content(links=links(5)))},
        config=QueueConfig(max_pending=3),
    )
    report = await env.run()
    assert report.discovered == 1
    assert await env.queue.count_pending() == 3


@pytest.mark.asyncio()
async def test_full_queue_skips_discovery():
    env = Setup(
        items=[pending(PERSONAL), pending("https://x.example/a", scheduled_for=FIXED_NOW + timedelta(days=1))],
        entries=[CatalogEntry(url=PERSONAL, title="A")],
        results={PERSONAL: success(PERSONAL, make_content(links=links(5)))},
        config=QueueConfig(max_pending=1),
    )
    report = await env.run()
    assert report.discovered == 0
    assert report.updated == 1


@pytest.mark.asyncio()
async def test_corporate_profile_only_harvests_links():
    env = Setup(items=[pending(PROFILE)], results={PROFILE: success(PROFILE, make_content(links=links(4)))})
    report = await env.run()
    assert PROFILE not in env.catalog.entries
    assert report.discovered == 4
    assert report.auto_submitted == 0
    assert env.queue.items[PROFILE].status is QueueStatus.COMPLETED


@pytest.mark.asyncio()
async def test_low_score_is_rejected_but_completed():
    env = Setup(items=[pending(PARKED)], results={PARKED: success(PARKED, parked_content())})
    report = await env.run()
    assert env.catalog.entries == {}
    assert report.successful == 1
    assert report.scores[0]["total_score"] == 0
    assert env.queue.items[PARKED].status is QueueStatus.COMPLETED


@pytest.mark.asyncio()
async def test_failure_is_rescheduled_with_backoff():
    env = Setup(items=[pending(PERSONAL)], results={PERSONAL: failure(PERSONAL, "Timeout after 10s")})
    report = await env.run()

    item = env.queue.items[PERSONAL]
    assert item.status is QueueStatus.PENDING
    assert item.attempts == 1
    assert item.scheduled_for == FIXED_NOW + timedelta(minutes=10)
    assert item.error_message == "Timeout after 10s"
    assert report.skipped == 1
    assert report.failed == 0


@pytest.mark.asyncio()
async def test_last_attempt_marks_item_and_entry_failed():
    existing = CatalogEntry(url=PERSONAL, title="A", crawl_status=CrawlStatus.SUCCESS)
    env = Setup(
        items=[pending(PERSONAL, attempts=2)],
        entries=[existing],
        results={PERSONAL: failure(PERSONAL)},
    )
    report = await env.run()

    item = env.queue.items[PERSONAL]
    assert item.status is QueueStatus.FAILED
    assert item.attempts == 3
    assert env.catalog.entries[PERSONAL].crawl_status is CrawlStatus.FAILED
    assert report.failed == 1


@pytest.mark.asyncio()
async def test_storage_error_on_one_item_does_not_stop_batch():
    other = "https://bob-smith.com/"

    class FlakyCatalog(MemoryCatalogRepository):
        async def create(self, entry):
            if entry.url == PERSONAL:
                raise StorageError("disk full")
            await super().create(entry)

    env = Setup(
        items=[pending(PERSONAL), pending(other)],
        results={PERSONAL: success(PERSONAL, make_content()), other: success(other, make_content())},
    )
    env.orchestrator.catalog = FlakyCatalog()
    report = await env.run()

    assert report.errors == [f"Database error for {PERSONAL}: disk full"]
    assert report.failed == 1
    assert report.successful == 1
    assert env.queue.items[PERSONAL].status is QueueStatus.FAILED
    assert env.queue.items[PERSONAL].error_message == report.errors[0]
    assert env.queue.items[other].status is QueueStatus.COMPLETED


@pytest.mark.asyncio()
async def test_selection_error_aborts_batch():
    class BrokenQueue(MemoryQueueRepository):
        async def fetch_eligible(self, now, limit, max_retries):
            raise StorageError("connection refused")

    env = Setup()
    env.orchestrator.queue = BrokenQueue()
    report = await env.run()

    assert report.aborted
    assert report.errors == ["Queue selection failed: connection refused"]
    assert env.crawler.calls == []


@pytest.mark.asyncio()
async def test_trigger_failure_is_not_fatal():
    class BrokenTrigger(MemoryValidationTrigger):
        async def notify(self):
            raise RuntimeError("webhook down")

    env = Setup(items=[pending(PERSONAL)], results={PERSONAL: success(PERSONAL, make_content())})
    env.orchestrator.trigger = BrokenTrigger()
    report = await env.run()
    assert report.auto_submitted == 1
    assert report.errors == []


@pytest.mark.asyncio()
async def test_selection_order_and_eligibility():
    cataloged = "https://known.example/"
    fresh = "https://fresh.example/"
    urgent = "https://urgent.example/"
    items = [
        pending(cataloged, priority=9),
        pending(fresh, priority=0),
        pending(urgent, priority=5),
        pending("https://later.example/", scheduled_for=FIXED_NOW + timedelta(minutes=1)),
        pending("https://exhausted.example/", attempts=3),
        pending("https://busy.example/", status=QueueStatus.PROCESSING),
    ]
    results = {url: failure(url) for url in (cataloged, fresh, urgent)}
    env = Setup(items=items, entries=[CatalogEntry(url=cataloged, title="K")], results=results)

    await env.run()
    assert env.crawler.calls[0][0] == [urgent, fresh, cataloged]


@pytest.mark.asyncio()
async def test_batch_size_limits_selection():
    items = [pending(f"https://site{i}.example/") for i in range(5)]
    results = {i.url: failure(i.url) for i in items}
    env = Setup(items=items, results=results, config=QueueConfig(batch_size=2))
    report = await env.run()
    assert report.processed == 2
    assert len(env.crawler.calls[0][0]) == 2


# --------------------------------------------------------------------------- #
#                       Overlapping and interrupted runs                      #
# --------------------------------------------------------------------------- #


class SlowSelectQueue(MemoryQueueRepository):
    """Отдаёт выборку после переключения контекста, как сетевое хранилище."""

    async def fetch_eligible(self, now, limit, max_retries):
        items = await super().fetch_eligible(now, limit, max_retries)
        await asyncio.sleep(0)
        return items


class HangingCrawler(FakeBatchCrawler):
    async def crawl_many(self, urls, concurrency=None, extract_all_links=None):
        await asyncio.sleep(3600)


class ExplodingCrawler(FakeBatchCrawler):
    async def crawl_many(self, urls, concurrency=None, extract_all_links=None):
        raise RuntimeError("crawler crashed")


@pytest.mark.asyncio()
async def test_overlapping_runs_crawl_each_item_once():
    env = Setup(results={PERSONAL: success(PERSONAL, make_content())})
    env.queue = SlowSelectQueue([pending(PERSONAL)], catalog=env.catalog)
    env.orchestrator.queue = env.queue

    first, second = await asyncio.gather(env.run(), env.run())

    assert env.crawler.calls == [([PERSONAL], [False])]
    assert sorted([first.processed, second.processed]) == [0, 1]
    assert env.queue.items[PERSONAL].status is QueueStatus.COMPLETED


@pytest.mark.asyncio()
async def test_timed_out_run_returns_items_to_pending():
    other = "https://bob-smith.com/"
    env = Setup(items=[pending(PERSONAL, attempts=1), pending(other)])
    env.orchestrator.crawler = HangingCrawler({})

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(env.run(), timeout=0.05)

    for url, attempts in ((PERSONAL, 1), (other, 0)):
        item = env.queue.items[url]
        assert item.status is QueueStatus.PENDING
        assert item.attempts == attempts
        assert item.scheduled_for == EARLIER
    # eligible again on the next run
    assert len(await env.queue.fetch_eligible(FIXED_NOW, 10, 3)) == 2


@pytest.mark.asyncio()
async def test_crashed_crawler_returns_items_to_pending():
    env = Setup(items=[pending(PERSONAL)])
    env.orchestrator.crawler = ExplodingCrawler({})

    with pytest.raises(RuntimeError, match="crawler crashed"):
        await env.run()
    assert env.queue.items[PERSONAL].status is QueueStatus.PENDING
