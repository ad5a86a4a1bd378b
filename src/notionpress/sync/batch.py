"""Batched database row sync.

Rows are split into fixed-size batches. Each batch is one background job
that upserts its slice and then queues the next batch, so batches of one
database always run in order and never overlap. Retries belong to the job
queue; a batch that is run twice is skipped the second time.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select

from ..config import get_config
from ..db.models import BatchJob
from ..db.schemas import BatchJobResponse, BatchStatus, DocumentType, SourceType
from ..db.sqlite import Database, get_db
from ..errors import FetchError, NotionPressError
from ..rows.repository import RowRepository
from ..router.registry import LinkRegistry
from ..store.documents import DocumentStore, DuplicateSourceError
from ..utils import normalize_id, utcnow_iso, validate_page_id
from .database_fetcher import DatabaseFetcher, extract_row_title
from .jobs import JobQueue

logger = logging.getLogger(__name__)

BATCH_HOOK = "batch.process"

ACTIVE_STATUSES = (BatchStatus.QUEUED.value, BatchStatus.PROCESSING.value)


@dataclass
class DatabaseSyncResult:
    """Outcome of starting a database sync."""

    success: bool
    target_document_id: Optional[int] = None
    row_count: int = 0
    batch_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


def extract_fields(entry: dict) -> dict:
    """Indexed columns of a normalized row."""
    properties = entry.get("properties") or {}
    status = properties.get("Status")
    return {
        "title": extract_row_title(properties),
        "status": status if isinstance(status, str) else None,
        "created_time": entry.get("created_time"),
        "last_edited_time": entry.get("last_edited_time"),
    }


class BatchProcessor:
    """Splits database rows into batches and drives them through the job queue."""

    def __init__(
        self,
        queue: JobQueue,
        db: Optional[Database] = None,
        fetcher: Optional[DatabaseFetcher] = None,
        rows: Optional[RowRepository] = None,
        store: Optional[DocumentStore] = None,
        links: Optional[LinkRegistry] = None,
        batch_size: Optional[int] = None,
    ):
        """Initialize the batch processor.

        Args:
            queue: Background job queue
            db: Database instance (uses the global one if not provided)
            fetcher: Database fetcher, needed only by ``sync_database``
            rows: Row repository
            store: Target document store
            links: Link registry
            batch_size: Rows per batch (uses config if not provided)
        """
        self.db = db or get_db()
        self.queue = queue
        self.fetcher = fetcher
        self.rows = rows or RowRepository(self.db)
        self.store = store or DocumentStore(self.db)
        self.links = links or LinkRegistry(self.db)
        self.batch_size = batch_size or get_config().batch_size

        self.queue.register(BATCH_HOOK, self.process_batch, on_failure=self._on_batch_failed)

    @staticmethod
    def _group(batch_id: str) -> str:
        return f"batch:{batch_id}"

    # ========================================================================
    # Queueing
    # ========================================================================

    def queue_sync(
        self,
        parent_document_id: int,
        rows: list[dict],
        source_database_id: Optional[str] = None,
    ) -> BatchJobResponse:
        """Record a batch job for the rows and queue its first batch.

        Args:
            parent_document_id: Database document the rows belong to
            rows: Normalized rows (see ``DatabaseFetcher.normalize_entry``)
            source_database_id: Notion database ID, used for status reporting

        Returns:
            The new batch job
        """
        total_items = len(rows)
        total_batches = math.ceil(total_items / self.batch_size)
        batch_id = f"batch_{uuid.uuid4().hex[:10]}"

        with self.db.get_session() as session:
            job = BatchJob(
                batch_id=batch_id,
                parent_document_id=parent_document_id,
                source_database_id=normalize_id(source_database_id) or None,
                batch_size=self.batch_size,
                total_batches=total_batches,
                total_items=total_items,
                processed_items=0,
                failed_items=0,
                current_batch_number=0,
                status=BatchStatus.QUEUED.value,
            )
            job.set_entries(rows)
            session.add(job)

        logger.info(
            "Queued batch %s: %d rows in %d batches of %d",
            batch_id, total_items, total_batches, self.batch_size,
        )

        if total_batches == 0:
            self._complete(batch_id, parent_document_id)
        else:
            self._enqueue(batch_id, parent_document_id, 1, total_batches)

        return self.get_batch(batch_id)

    def _enqueue(
        self, batch_id: str, parent_document_id: int, batch_number: int, total_batches: int
    ) -> None:
        self.queue.enqueue(
            BATCH_HOOK,
            {
                "batch_id": batch_id,
                "parent_document_id": parent_document_id,
                "batch_number": batch_number,
                "total_batches": total_batches,
            },
            group=self._group(batch_id),
        )

    # ========================================================================
    # Processing
    # ========================================================================

    def process_batch(
        self,
        batch_id: str,
        parent_document_id: int,
        batch_number: int,
        total_batches: int,
    ) -> None:
        """Background job: upsert one slice of rows, then queue the next batch.

        A batch that was already processed is skipped, so retries and
        duplicate jobs cannot double-count progress.
        """
        with self.db.get_session() as session:
            job = session.get(BatchJob, batch_id)
            if job is None:
                logger.warning("Batch %s not found, skipping batch %d", batch_id, batch_number)
                return
            if job.status not in ACTIVE_STATUSES:
                logger.info("Batch %s is %s, skipping batch %d", batch_id, job.status, batch_number)
                return
            if batch_number <= job.current_batch_number:
                logger.debug("Batch %s #%d already processed", batch_id, batch_number)
                already_done = True
            else:
                already_done = False
                job.status = BatchStatus.PROCESSING.value
                start = (batch_number - 1) * job.batch_size
                entries = job.get_entries()[start:start + job.batch_size]

        if already_done:
            # Finish the follow-up in case the earlier run stopped before doing so
            if batch_number >= total_batches:
                self._complete(batch_id, parent_document_id)
            elif not self.queue.pending_count(self._group(batch_id)):
                self._enqueue(batch_id, parent_document_id, batch_number + 1, total_batches)
            return

        completed, failed = 0, 0
        for entry in entries:
            try:
                self.rows.upsert(
                    parent_document_id,
                    entry["id"],
                    entry.get("properties") or {},
                    extract_fields(entry),
                )
                completed += 1
            except Exception as e:
                failed += 1
                logger.warning(
                    "Batch %s: failed to sync row %s: %s", batch_id, entry.get("id", "unknown"), e
                )

        with self.db.get_session() as session:
            job = session.get(BatchJob, batch_id)
            job.processed_items += completed
            job.failed_items += failed
            job.current_batch_number = batch_number
            cancelled = job.status == BatchStatus.CANCELLED.value

        logger.info(
            "Batch %s #%d/%d: %d rows synced, %d failed",
            batch_id, batch_number, total_batches, completed, failed,
        )

        if cancelled:
            return
        if batch_number < total_batches:
            self._enqueue(batch_id, parent_document_id, batch_number + 1, total_batches)
        else:
            self._complete(batch_id, parent_document_id)

    def _complete(self, batch_id: str, parent_document_id: int) -> None:
        now = utcnow_iso()
        self.store.update(
            parent_document_id,
            meta={"row_count": self.rows.count_rows(parent_document_id), "last_synced": now},
        )

        with self.db.get_session() as session:
            job = session.get(BatchJob, batch_id)
            job.status = BatchStatus.COMPLETED.value
            job.completed_at = now
            job.set_entries([])
        logger.info("Batch %s completed", batch_id)

    def _on_batch_failed(self, args: dict, error: str) -> None:
        """Mark a batch failed once the queue gives up on one of its jobs."""
        with self.db.get_session() as session:
            job = session.get(BatchJob, args.get("batch_id"))
            if job is None:
                return
            job.status = BatchStatus.FAILED.value
            job.last_error = error
            job.completed_at = utcnow_iso()
        logger.error("Batch %s failed: %s", args.get("batch_id"), error)

    # ========================================================================
    # Status and cancellation
    # ========================================================================

    def get_batch(self, batch_id: str) -> Optional[BatchJobResponse]:
        """Snapshot of one batch job."""
        with self.db.get_session() as session:
            job = session.get(BatchJob, batch_id)
            return BatchJobResponse.model_validate(job) if job else None

    def get_status(self, parent_document_id: int) -> Optional[BatchJobResponse]:
        """Most recent batch job of a database document."""
        with self.db.get_session() as session:
            job = session.execute(
                select(BatchJob)
                .where(BatchJob.parent_document_id == parent_document_id)
                .order_by(BatchJob.started_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return BatchJobResponse.model_validate(job) if job else None

    def cancel(self, batch_id: str) -> bool:
        """Stop a batch job between batches.

        A batch that is already running finishes, but no further batch is
        queued.

        Returns:
            True if the job was active and is now cancelled
        """
        with self.db.get_session() as session:
            job = session.get(BatchJob, batch_id)
            if job is None or job.status not in ACTIVE_STATUSES:
                return False
            job.status = BatchStatus.CANCELLED.value
            job.completed_at = utcnow_iso()

        cancelled_jobs = self.queue.cancel_group(self._group(batch_id))
        logger.info("Cancelled batch %s (%d queued jobs dropped)", batch_id, cancelled_jobs)
        return True

    # ========================================================================
    # Whole-database sync
    # ========================================================================

    def sync_database(self, database_id: str) -> DatabaseSyncResult:
        """Fetch a database and sync its rows.

        Small databases are written inline; larger ones are queued in
        batches. Never raises.
        """
        try:
            normalized = validate_page_id(database_id)
            if self.fetcher is None:
                raise FetchError("No database fetcher configured")

            schema = self.fetcher.get_database_schema(normalized)
            if schema is None:
                raise FetchError(
                    "Failed to fetch database schema from Notion. The database may not "
                    "exist or the integration may not have access."
                )
            rows = self.fetcher.query_database(normalized)

            document_id = self._find_or_create_document(normalized, schema)
            self.links.register(normalized, schema["title"], SourceType.DATABASE)
            self.links.mark_as_synced(normalized, document_id, target_type=DocumentType.DATABASE.value)

            batch_id = None
            if len(rows) <= self.batch_size:
                for entry in rows:
                    self.rows.upsert(
                        document_id, entry["id"], entry.get("properties") or {}, extract_fields(entry)
                    )
                self.store.update(
                    document_id,
                    meta={"row_count": self.rows.count_rows(document_id), "last_synced": utcnow_iso()},
                )
            else:
                batch_id = self.queue_sync(document_id, rows, normalized).batch_id

            self.links.update_sync_timestamps(
                normalized, schema.get("last_edited_time"), utcnow_iso()
            )
        except NotionPressError as e:
            logger.warning("Sync of database %s failed at %s: %s", database_id, e.stage, e)
            return DatabaseSyncResult(success=False, error=str(e), error_kind=e.stage)
        except Exception as e:
            logger.exception("Unexpected error while syncing database %s", database_id)
            return DatabaseSyncResult(
                success=False,
                error=f"Sync failed with an unexpected error ({e.__class__.__name__}). See the log for details.",
                error_kind="unexpected",
            )

        return DatabaseSyncResult(
            success=True,
            target_document_id=document_id,
            row_count=len(rows),
            batch_id=batch_id,
        )

    def _find_or_create_document(self, database_id: str, schema: dict) -> int:
        meta = {"schema": schema["properties"]}
        existing = self.store.find_by_source_page_id(database_id)
        if existing is None:
            try:
                document = self.store.create(
                    title=schema["title"],
                    content="",
                    source_page_id=database_id,
                    source_last_edited_at=schema.get("last_edited_time"),
                    doc_type=DocumentType.DATABASE,
                    meta=meta,
                )
                return document.id
            except DuplicateSourceError as e:
                existing = self.store.get(e.document_id)
                if existing is None:
                    raise

        self.store.update(existing.id, title=schema["title"], meta=meta)
        self.store.upsert_sync_record(existing.id, database_id, schema.get("last_edited_time"))
        return existing.id
