"""Queue and catalog persistence."""

from indie_scout.storage.base import CatalogRepository, QueueRepository, StorageError, ValidationTrigger
from indie_scout.storage.memory import MemoryCatalogRepository, MemoryQueueRepository, MemoryValidationTrigger
from indie_scout.storage.sqlite import SQLiteCatalogRepository, SQLiteQueueRepository, SQLiteStore

__all__ = (
    "CatalogRepository",
    "QueueRepository",
    "StorageError",
    "ValidationTrigger",
    "MemoryCatalogRepository",
    "MemoryQueueRepository",
    "MemoryValidationTrigger",
    "SQLiteCatalogRepository",
    "SQLiteQueueRepository",
    "SQLiteStore",
)
