"""SQLAlchemy ORM models for local SQLite storage.

Tables:
- documents: Target documents (posts and database documents)
- sync_records: Source page to document mapping, unique per source page
- notion_links: Link registry for routing and link rewriting
- media_registry: Downloaded media, unique per source block
- database_rows: Normalized database rows, unique per parent and source row
- batch_jobs: Progress of batched database syncs
- scheduled_jobs: Background job queue
"""

import json
import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .schemas import (
    BatchStatus,
    DocumentStatus,
    DocumentType,
    JobStatus,
    LinkStatus,
    MediaStatus,
    SourceType,
)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class Document(Base):
    """Target document - the synced counterpart of a Notion page or database."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="Untitled")
    content: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(
        String(20), default=DocumentStatus.DRAFT.value, index=True
    )
    doc_type: Mapped[str] = mapped_column(
        String(20), default=DocumentType.POST.value, index=True
    )
    slug: Mapped[Optional[str]] = mapped_column(String(200), index=True)
    meta: Mapped[Optional[str]] = mapped_column(Text)  # JSON dict

    created_at: Mapped[str] = mapped_column(String(26), default=_utcnow)
    updated_at: Mapped[str] = mapped_column(String(26), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, title='{self.title}', status={self.status})>"

    def get_meta(self) -> dict:
        """Get meta as dict."""
        if self.meta:
            return json.loads(self.meta)
        return {}

    def set_meta(self, meta: dict) -> None:
        """Set meta from dict."""
        self.meta = json.dumps(meta) if meta else None


class SyncRecord(Base):
    """Sync metadata attached to a synced document."""

    __tablename__ = "sync_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    # Normalized (dash-stripped) ID; the unique constraint backstops duplicate detection
    source_page_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    last_synced_at: Mapped[str] = mapped_column(String(26), default=_utcnow)
    source_last_edited_at: Mapped[Optional[str]] = mapped_column(String(40))

    def __repr__(self) -> str:
        return f"<SyncRecord(source={self.source_page_id}, document={self.document_id})>"


class LinkEntry(Base):
    """Link registry entry - maps a source document to its target."""

    __tablename__ = "notion_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    source_id_uuid: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    source_title: Mapped[str] = mapped_column(String(500), nullable=False)
    source_type: Mapped[str] = mapped_column(String(20), default=SourceType.PAGE.value)
    source_url: Mapped[Optional[str]] = mapped_column(Text)

    target_document_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    target_type: Mapped[Optional[str]] = mapped_column(String(20))
    slug: Mapped[Optional[str]] = mapped_column(String(200), unique=True)

    sync_status: Mapped[str] = mapped_column(
        String(20), default=LinkStatus.PENDING.value, index=True
    )
    sync_error: Mapped[Optional[str]] = mapped_column(Text)
    source_last_edited: Mapped[Optional[str]] = mapped_column(String(40))
    target_last_synced: Mapped[Optional[str]] = mapped_column(String(26))

    access_count: Mapped[int] = mapped_column(Integer, default=0)
    last_accessed_at: Mapped[Optional[str]] = mapped_column(String(26))

    created_at: Mapped[str] = mapped_column(String(26), default=_utcnow)
    updated_at: Mapped[str] = mapped_column(String(26), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<LinkEntry(source={self.source_id}, slug={self.slug}, status={self.sync_status})>"


class MediaEntry(Base):
    """Media registry entry - one downloaded asset per source block."""

    __tablename__ = "media_registry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_block_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    local_path: Mapped[Optional[str]] = mapped_column(Text)
    local_url: Mapped[Optional[str]] = mapped_column(Text)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(
        String(20), default=MediaStatus.PENDING.value, index=True
    )
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text)

    registered_at: Mapped[str] = mapped_column(String(26), default=_utcnow)
    updated_at: Mapped[str] = mapped_column(String(26), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<MediaEntry(block={self.source_block_id}, status={self.status})>"


class DatabaseRow(Base):
    """Normalized row of a Notion database."""

    __tablename__ = "database_rows"
    __table_args__ = (
        UniqueConstraint(
            "parent_document_id", "source_row_id", name="uq_database_rows_parent_source"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parent_document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_row_id: Mapped[str] = mapped_column(String(64), nullable=False)
    properties: Mapped[str] = mapped_column(Text, default="{}")  # JSON dict
    title: Mapped[str] = mapped_column(String(500), default="Untitled", index=True)
    status: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    created_time: Mapped[Optional[str]] = mapped_column(String(40))
    last_edited_time: Mapped[Optional[str]] = mapped_column(String(40), index=True)
    synced_at: Mapped[str] = mapped_column(String(26), default=_utcnow)

    def __repr__(self) -> str:
        return f"<DatabaseRow(parent={self.parent_document_id}, source={self.source_row_id})>"

    def get_properties(self) -> dict:
        """Get properties as dict."""
        if self.properties:
            return json.loads(self.properties)
        return {}


class BatchJob(Base):
    """Progress of a batched database sync. Working state, not a ledger."""

    __tablename__ = "batch_jobs"

    batch_id: Mapped[str] = mapped_column(String(40), primary_key=True)
    parent_document_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    source_database_id: Mapped[Optional[str]] = mapped_column(String(64))

    batch_size: Mapped[int] = mapped_column(Integer, nullable=False)
    total_batches: Mapped[int] = mapped_column(Integer, nullable=False)
    current_batch_number: Mapped[int] = mapped_column(Integer, default=0)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False)
    processed_items: Mapped[int] = mapped_column(Integer, default=0)
    failed_items: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(
        String(20), default=BatchStatus.QUEUED.value, index=True
    )
    entries: Mapped[str] = mapped_column(Text, default="[]")  # JSON list of raw rows
    last_error: Mapped[Optional[str]] = mapped_column(Text)

    started_at: Mapped[str] = mapped_column(String(26), default=_utcnow)
    completed_at: Mapped[Optional[str]] = mapped_column(String(26))
    updated_at: Mapped[str] = mapped_column(String(26), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return (
            f"<BatchJob(id={self.batch_id}, {self.current_batch_number}/{self.total_batches}, "
            f"status={self.status})>"
        )

    def get_entries(self) -> list:
        """Get the queued raw rows."""
        if self.entries:
            return json.loads(self.entries)
        return []

    def set_entries(self, entries: list) -> None:
        """Store the raw rows to process."""
        self.entries = json.dumps(entries)


class ScheduledJob(Base):
    """Background job waiting to run."""

    __tablename__ = "scheduled_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hook: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    args: Mapped[Optional[str]] = mapped_column(Text)  # JSON dict
    group_key: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=5)
    run_after: Mapped[float] = mapped_column(Float, default=time.time, index=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[str] = mapped_column(String(26), default=_utcnow)
    updated_at: Mapped[str] = mapped_column(String(26), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<ScheduledJob(id={self.id}, hook={self.hook}, status={self.status})>"

    def get_args(self) -> dict:
        """Get args as dict."""
        if self.args:
            return json.loads(self.args)
        return {}

    def set_args(self, args: dict) -> None:
        """Set args from dict."""
        self.args = json.dumps(args) if args else None
