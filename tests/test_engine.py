# File: tests/test_engine.py
"""Сборка Engine: выбор хранилища и триггера, прогон пустой очереди, отчёт."""
import json
from datetime import timedelta

from conftest import FIXED_NOW
from indie_scout.aggregator import BatchReport
from indie_scout.config import CrawlerConfig, QueueConfig
from indie_scout.engine import Engine, build_repositories
from indie_scout.queue.models import CrawlQueueItem, QueueStatus
from indie_scout.queue.trigger import HttpValidationTrigger, LoggingValidationTrigger
from indie_scout.report import render_json
from indie_scout.storage import MemoryQueueRepository, SQLiteQueueRepository


def test_build_repositories_memory_by_default():
    queue, catalog = build_repositories(CrawlerConfig())
    assert isinstance(queue, MemoryQueueRepository)
    assert queue.catalog is catalog


def test_build_repositories_sqlite(tmp_path):
    queue, _ = build_repositories(CrawlerConfig(database=tmp_path / "scout.db"))
    assert isinstance(queue, SQLiteQueueRepository)
    assert (tmp_path / "scout.db").exists()


def test_trigger_selection():
    assert isinstance(Engine(CrawlerConfig()).trigger, LoggingValidationTrigger)
    hooked = CrawlerConfig(queue=QueueConfig(validation_webhook="http://localhost:9/validate"))
    trigger = Engine(hooked).trigger
    assert isinstance(trigger, HttpValidationTrigger)
    assert trigger.endpoint == "http://localhost:9/validate"


def test_run_batch_on_empty_queue():
    report = Engine(CrawlerConfig()).run_batch()
    assert report.processed == 0
    assert not report.aborted
    assert report.started_at is not None


def test_admin_operations_round_trip(tmp_path):
    engine = Engine(CrawlerConfig(database=tmp_path / "scout.db"))
    result = engine.enqueue(["https://alice.example/", "https://alice.example/"], priority=2)
    assert result.added == 1

    stats = engine.stats()
    assert stats.pending == 1
    assert [i.url for i in engine.browse(QueueStatus.PENDING)] == ["https://alice.example/"]
    assert engine.retry_failed() == 0


def test_cleanup_uses_configured_retention():
    engine = Engine(CrawlerConfig(queue=QueueConfig(retention_days=10)))
    old = FIXED_NOW.replace(year=2020)
    engine.queue.items["https://old.example/"] = CrawlQueueItem(
        url="https://old.example/", status=QueueStatus.COMPLETED, last_attempt=old
    )
    engine.queue.items["https://fresh.example/"] = CrawlQueueItem(
        url="https://fresh.example/", status=QueueStatus.COMPLETED,
        last_attempt=FIXED_NOW.replace(year=2999) - timedelta(days=1),
    )
    assert engine.cleanup() == 1
    assert list(engine.queue.items) == ["https://fresh.example/"]


def test_batch_report_serialization(tmp_path):
    report = BatchReport(processed=3, successful=2, failed=1, started_at=FIXED_NOW, errors=["Database error"])
    data = json.loads(report.json())
    assert data["processed"] == 3
    assert data["started_at"] == FIXED_NOW.isoformat()
    assert "processed=3" in report.summary()

    path = render_json(report, tmp_path / "out" / "report.json")
    assert json.loads(path.read_text(encoding="utf-8"))["errors"] == ["Database error"]
