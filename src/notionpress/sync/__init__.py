"""Fetching, syncing and background processing."""

from .batch import BATCH_HOOK, BatchProcessor, DatabaseSyncResult
from .database_fetcher import DatabaseFetcher
from .fetcher import ContentFetcher, PageProperties, PageSummary
from .jobs import JobQueue
from .manager import SyncManager, SyncResult, SyncStatus

__all__ = [
    "BATCH_HOOK",
    "BatchProcessor",
    "ContentFetcher",
    "DatabaseFetcher",
    "DatabaseSyncResult",
    "JobQueue",
    "PageProperties",
    "PageSummary",
    "SyncManager",
    "SyncResult",
    "SyncStatus",
]
