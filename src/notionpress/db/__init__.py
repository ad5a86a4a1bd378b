"""Database module for local SQLite storage."""

from .models import (
    BatchJob,
    DatabaseRow,
    Document,
    LinkEntry,
    MediaEntry,
    ScheduledJob,
    SyncRecord,
)
from .sqlite import Database, get_db, reset_db

__all__ = [
    "BatchJob",
    "DatabaseRow",
    "Document",
    "LinkEntry",
    "MediaEntry",
    "ScheduledJob",
    "SyncRecord",
    "Database",
    "get_db",
    "reset_db",
]
