"""SQLite persistence for the crawl queue and the site catalog."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Collection, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Union

from indie_scout.queue.models import CatalogEntry, CrawlQueueItem, CrawlStatus, QueueStatus
from indie_scout.storage.base import CatalogRepository, QueueRepository, StorageError

__all__ = ("SQLiteStore", "SQLiteQueueRepository", "SQLiteCatalogRepository")

# fixed width so that text comparison orders timestamps correctly
_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_IN_CHUNK = 500

_SCHEMA = """
CREATE TABLE IF NOT EXISTS crawl_queue (
    url               TEXT PRIMARY KEY,
    priority          INTEGER NOT NULL DEFAULT 0,
    scheduled_for     TEXT NOT NULL,
    attempts          INTEGER NOT NULL DEFAULT 0,
    status            TEXT NOT NULL DEFAULT 'pending'
                      CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    last_attempt      TEXT,
    error_message     TEXT,
    extract_all_links INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_crawl_queue_eligible ON crawl_queue (status, scheduled_for);

CREATE TABLE IF NOT EXISTS catalog (
    url                TEXT PRIMARY KEY,
    title              TEXT NOT NULL,
    description        TEXT,
    discovery_method   TEXT NOT NULL,
    site_type          TEXT NOT NULL,
    seeding_score      INTEGER NOT NULL DEFAULT 0,
    seeding_reasons    TEXT NOT NULL DEFAULT '[]',
    extracted_keywords TEXT NOT NULL DEFAULT '[]',
    detected_language  TEXT,
    content_sample     TEXT,
    last_crawled       TEXT,
    crawl_status       TEXT NOT NULL DEFAULT 'pending',
    ssl_enabled        INTEGER NOT NULL DEFAULT 0,
    outbound_links     TEXT NOT NULL DEFAULT '[]',
    discovered_at      TEXT NOT NULL,
    response_time_ms   INTEGER,
    validation_tier    TEXT NOT NULL DEFAULT 'review',
    validated          INTEGER NOT NULL DEFAULT 0
);
"""

_CATALOG_COLUMNS = (
    "url",
    "title",
    "description",
    "discovery_method",
    "site_type",
    "seeding_score",
    "seeding_reasons",
    "extracted_keywords",
    "detected_language",
    "content_sample",
    "last_crawled",
    "crawl_status",
    "ssl_enabled",
    "outbound_links",
    "discovered_at",
    "response_time_ms",
    "validation_tier",
    "validated",
)


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TS_FORMAT)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _chunks(values: Sequence[str]) -> Iterator[Sequence[str]]:
    for start in range(0, len(values), _IN_CHUNK):
        yield values[start : start + _IN_CHUNK]


def _placeholders(count: int) -> str:
    return ", ".join("?" * count)


class SQLiteStore:
    """Owns the database file and hands out short-lived connections."""

    def __init__(self, db_path: Union[str, Path], initialize: bool = True) -> None:
        self.db_path = Path(db_path)
        if initialize:
            self.initialize_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            connection = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open {self.db_path}: {exc}") from exc
        connection.row_factory = sqlite3.Row
        try:
            yield connection
            connection.commit()
        except sqlite3.Error as exc:
            connection.rollback()
            raise StorageError(str(exc)) from exc
        finally:
            connection.close()

    def initialize_schema(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as connection:
            connection.executescript(_SCHEMA)


# --------------------------------------------------------------------------- #
# Queue                                                                       #
# --------------------------------------------------------------------------- #


def _row_to_item(row: sqlite3.Row) -> CrawlQueueItem:
    return CrawlQueueItem(
        url=row["url"],
        priority=row["priority"],
        scheduled_for=_parse_ts(row["scheduled_for"]),
        attempts=row["attempts"],
        status=QueueStatus(row["status"]),
        last_attempt=_parse_ts(row["last_attempt"]),
        error_message=row["error_message"],
        extract_all_links=bool(row["extract_all_links"]),
        created_at=_parse_ts(row["created_at"]),
    )


class SQLiteQueueRepository(QueueRepository):
    def __init__(self, store: SQLiteStore) -> None:
        self.store = store

    async def fetch_eligible(self, now: datetime, limit: int, max_retries: int) -> List[CrawlQueueItem]:
        with self.store.connect() as connection:
            rows = connection.execute(
                """
                SELECT q.* FROM crawl_queue q
                LEFT JOIN catalog c ON c.url = q.url
                WHERE q.status = 'pending' AND q.scheduled_for <= ? AND q.attempts < ?
                ORDER BY (c.url IS NOT NULL) ASC, q.priority DESC, q.scheduled_for ASC
                LIMIT ?
                """,
                (_format_ts(now), max_retries, limit),
            ).fetchall()
        return [_row_to_item(row) for row in rows]

    async def claim(self, urls: Collection[str], now: datetime) -> List[str]:
        urls = list(urls)
        if not urls:
            return []
        claimed: List[str] = []
        # one transaction for the whole batch
        with self.store.connect() as connection:
            for chunk in _chunks(urls):
                cursor = connection.execute(
                    f"UPDATE crawl_queue SET status = 'processing', last_attempt = ? "
                    f"WHERE status = 'pending' AND url IN ({_placeholders(len(chunk))}) RETURNING url",
                    (_format_ts(now), *chunk),
                )
                claimed.extend(row[0] for row in cursor.fetchall())
        return claimed

    async def update(self, item: CrawlQueueItem) -> None:
        with self.store.connect() as connection:
            cursor = connection.execute(
                """
                UPDATE crawl_queue
                SET priority = ?, scheduled_for = ?, attempts = ?, status = ?,
                    last_attempt = ?, error_message = ?, extract_all_links = ?
                WHERE url = ?
                """,
                (
                    item.priority,
                    _format_ts(item.scheduled_for),
                    item.attempts,
                    item.status.value,
                    _format_ts(item.last_attempt),
                    item.error_message,
                    int(item.extract_all_links),
                    item.url,
                ),
            )
            if cursor.rowcount == 0:
                raise StorageError(f"Queue item not found: {item.url}")

    async def get_by_url(self, url: str) -> Optional[CrawlQueueItem]:
        with self.store.connect() as connection:
            row = connection.execute("SELECT * FROM crawl_queue WHERE url = ?", (url,)).fetchone()
        return _row_to_item(row) if row else None

    async def add_many(self, items: Iterable[CrawlQueueItem]) -> int:
        added = 0
        with self.store.connect() as connection:
            for item in items:
                cursor = connection.execute(
                    """
                    INSERT OR IGNORE INTO crawl_queue (
                        url, priority, scheduled_for, attempts, status,
                        last_attempt, error_message, extract_all_links, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        item.url,
                        item.priority,
                        _format_ts(item.scheduled_for),
                        item.attempts,
                        item.status.value,
                        _format_ts(item.last_attempt),
                        item.error_message,
                        int(item.extract_all_links),
                        _format_ts(item.created_at),
                    ),
                )
                added += cursor.rowcount
        return added

    async def count_pending(self) -> int:
        with self.store.connect() as connection:
            row = connection.execute(
                "SELECT COUNT(*) FROM crawl_queue WHERE status = 'pending'"
            ).fetchone()
        return int(row[0])

    async def existing_urls(self, urls: Collection[str]) -> Set[str]:
        return _existing(self.store, "crawl_queue", urls)

    async def delete_completed_before(self, cutoff: datetime) -> int:
        with self.store.connect() as connection:
            cursor = connection.execute(
                "DELETE FROM crawl_queue WHERE status = 'completed' AND last_attempt < ?",
                (_format_ts(cutoff),),
            )
        return cursor.rowcount

    async def counts_by_status(self) -> Dict[QueueStatus, int]:
        counts = {status: 0 for status in QueueStatus}
        with self.store.connect() as connection:
            for row in connection.execute(
                "SELECT status, COUNT(*) AS n FROM crawl_queue GROUP BY status"
            ):
                counts[QueueStatus(row["status"])] = row["n"]
        return counts

    async def oldest_pending(self) -> Optional[datetime]:
        with self.store.connect() as connection:
            row = connection.execute(
                "SELECT MIN(scheduled_for) FROM crawl_queue WHERE status = 'pending'"
            ).fetchone()
        return _parse_ts(row[0])

    async def newest_completed(self) -> Optional[datetime]:
        with self.store.connect() as connection:
            row = connection.execute(
                "SELECT MAX(last_attempt) FROM crawl_queue WHERE status = 'completed'"
            ).fetchone()
        return _parse_ts(row[0])

    async def list_items(
        self, status: Optional[QueueStatus] = None, limit: int = 20, offset: int = 0
    ) -> List[CrawlQueueItem]:
        query = "SELECT * FROM crawl_queue"
        params: List[object] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY priority DESC, scheduled_for ASC LIMIT ? OFFSET ?"
        params.extend((limit, offset))
        with self.store.connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [_row_to_item(row) for row in rows]

    async def reset_failed(self) -> int:
        with self.store.connect() as connection:
            cursor = connection.execute(
                "UPDATE crawl_queue SET status = 'pending', attempts = 0, error_message = NULL "
                "WHERE status = 'failed'"
            )
        return cursor.rowcount


# --------------------------------------------------------------------------- #
# Catalog                                                                     #
# --------------------------------------------------------------------------- #


def _entry_params(entry: CatalogEntry) -> tuple:
    return (
        entry.url,
        entry.title,
        entry.description,
        entry.discovery_method,
        entry.site_type,
        entry.seeding_score,
        json.dumps(list(entry.seeding_reasons), ensure_ascii=False),
        json.dumps(list(entry.extracted_keywords), ensure_ascii=False),
        entry.detected_language,
        entry.content_sample,
        _format_ts(entry.last_crawled),
        entry.crawl_status.value,
        int(entry.ssl_enabled),
        json.dumps(list(entry.outbound_links), ensure_ascii=False),
        _format_ts(entry.discovered_at),
        entry.response_time_ms,
        entry.validation_tier,
        int(entry.validated),
    )


def _row_to_entry(row: sqlite3.Row) -> CatalogEntry:
    return CatalogEntry(
        url=row["url"],
        title=row["title"],
        description=row["description"],
        discovery_method=row["discovery_method"],
        site_type=row["site_type"],
        seeding_score=row["seeding_score"],
        seeding_reasons=tuple(json.loads(row["seeding_reasons"])),
        extracted_keywords=tuple(json.loads(row["extracted_keywords"])),
        detected_language=row["detected_language"],
        content_sample=row["content_sample"],
        last_crawled=_parse_ts(row["last_crawled"]),
        crawl_status=CrawlStatus(row["crawl_status"]),
        ssl_enabled=bool(row["ssl_enabled"]),
        outbound_links=tuple(json.loads(row["outbound_links"])),
        discovered_at=_parse_ts(row["discovered_at"]),
        response_time_ms=row["response_time_ms"],
        validation_tier=row["validation_tier"],
        validated=bool(row["validated"]),
    )


def _existing(store: SQLiteStore, table: str, urls: Collection[str]) -> Set[str]:
    urls = list(urls)
    found: Set[str] = set()
    if not urls:
        return found
    with store.connect() as connection:
        for chunk in _chunks(urls):
            rows = connection.execute(
                f"SELECT url FROM {table} WHERE url IN ({_placeholders(len(chunk))})", chunk
            ).fetchall()
            found.update(row["url"] for row in rows)
    return found


class SQLiteCatalogRepository(CatalogRepository):
    def __init__(self, store: SQLiteStore) -> None:
        self.store = store

    async def get_by_url(self, url: str) -> Optional[CatalogEntry]:
        with self.store.connect() as connection:
            row = connection.execute("SELECT * FROM catalog WHERE url = ?", (url,)).fetchone()
        return _row_to_entry(row) if row else None

    async def create(self, entry: CatalogEntry) -> None:
        columns = ", ".join(_CATALOG_COLUMNS)
        with self.store.connect() as connection:
            connection.execute(
                f"INSERT INTO catalog ({columns}) VALUES ({_placeholders(len(_CATALOG_COLUMNS))})",
                _entry_params(entry),
            )

    async def update(self, entry: CatalogEntry) -> None:
        assignments = ", ".join(f"{c} = ?" for c in _CATALOG_COLUMNS[1:])
        params = _entry_params(entry)
        with self.store.connect() as connection:
            cursor = connection.execute(
                f"UPDATE catalog SET {assignments} WHERE url = ?", (*params[1:], params[0])
            )
            if cursor.rowcount == 0:
                raise StorageError(f"Catalog entry not found: {entry.url}")

    async def existing_urls(self, urls: Collection[str]) -> Set[str]:
        return _existing(self.store, "catalog", urls)

    async def mark_crawl_failed(self, url: str, when: datetime) -> None:
        with self.store.connect() as connection:
            connection.execute(
                "UPDATE catalog SET crawl_status = 'failed', last_crawled = ? WHERE url = ?",
                (_format_ts(when), url),
            )
