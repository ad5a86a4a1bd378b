"""Pydantic schemas for stored entities.

Response models are read-only snapshots built from ORM rows with
``model_validate(row)``; managers return these instead of live ORM objects.
"""

import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class DocumentStatus(str, Enum):
    """Publication state of a target document."""

    DRAFT = "draft"
    PUBLISHED = "publish"


class DocumentType(str, Enum):
    """Kind of target document."""

    POST = "post"
    DATABASE = "database"


class SourceType(str, Enum):
    """Kind of source document."""

    PAGE = "page"
    DATABASE = "database"


class LinkStatus(str, Enum):
    """Sync state of a link registry entry."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class ComprehensiveStatus(str, Enum):
    """Detailed sync state derived from a link entry and its timestamps."""

    NOT_SYNCED = "not_synced"
    SYNCING = "syncing"
    FAILED = "failed"
    OUTDATED = "outdated"
    SYNCED = "synced"


class MediaStatus(str, Enum):
    """Download state of a media registry entry."""

    PENDING = "pending"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


class BatchStatus(str, Enum):
    """Progress state of a batch job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobStatus(str, Enum):
    """State of a scheduled background job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ============================================================================
# Response Schemas
# ============================================================================


class DocumentResponse(BaseModel):
    """Snapshot of a target document."""

    id: int
    title: str
    content: str = ""
    status: DocumentStatus = DocumentStatus.DRAFT
    doc_type: DocumentType = DocumentType.POST
    slug: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}

    @field_validator("meta", mode="before")
    @classmethod
    def parse_meta(cls, v):
        """Decode the JSON column."""
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            return json.loads(v)
        return v


class LinkEntryResponse(BaseModel):
    """Snapshot of a link registry entry."""

    id: int
    source_id: str
    source_id_uuid: Optional[str] = None
    source_title: str
    source_type: SourceType = SourceType.PAGE
    source_url: Optional[str] = None
    target_document_id: Optional[int] = None
    target_type: Optional[str] = None
    slug: Optional[str] = None
    sync_status: LinkStatus = LinkStatus.PENDING
    sync_error: Optional[str] = None
    source_last_edited: Optional[str] = None
    target_last_synced: Optional[str] = None
    access_count: int = 0
    last_accessed_at: Optional[str] = None

    model_config = {"from_attributes": True}


class MediaEntryResponse(BaseModel):
    """Snapshot of a media registry entry."""

    source_block_id: str
    source_url: str
    local_path: Optional[str] = None
    local_url: Optional[str] = None
    mime_type: Optional[str] = None
    status: MediaStatus = MediaStatus.PENDING
    error_count: int = 0
    last_error: Optional[str] = None

    model_config = {"from_attributes": True}


class DatabaseRowResponse(BaseModel):
    """Snapshot of a stored database row."""

    id: int
    parent_document_id: int
    source_row_id: str
    properties: dict[str, Any] = Field(default_factory=dict)
    title: str = "Untitled"
    status: Optional[str] = None
    created_time: Optional[str] = None
    last_edited_time: Optional[str] = None
    synced_at: str

    model_config = {"from_attributes": True}

    @field_validator("properties", mode="before")
    @classmethod
    def parse_properties(cls, v):
        """Decode the JSON column."""
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            return json.loads(v)
        return v


class BatchJobResponse(BaseModel):
    """Snapshot of a batch job, used for progress rendering."""

    batch_id: str
    parent_document_id: int
    source_database_id: Optional[str] = None
    batch_size: int
    total_batches: int
    current_batch_number: int = 0
    total_items: int
    processed_items: int = 0
    failed_items: int = 0
    status: BatchStatus = BatchStatus.QUEUED
    last_error: Optional[str] = None
    started_at: str
    completed_at: Optional[str] = None

    model_config = {"from_attributes": True}

    @property
    def percentage(self) -> int:
        """Completion percentage based on processed and failed items."""
        if self.total_items <= 0:
            return 100 if self.status == BatchStatus.COMPLETED else 0
        done = self.processed_items + self.failed_items
        return min(100, round(done * 100 / self.total_items))


class ScheduledJobResponse(BaseModel):
    """Snapshot of a background job."""

    id: int
    hook: str
    group_key: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    max_attempts: int = 5
    run_after: float
    last_error: Optional[str] = None

    model_config = {"from_attributes": True}
