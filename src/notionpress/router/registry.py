"""Link registry: source document ID to target document and slug.

Entries are created as soon as a source document is discovered (a link
or child page pointing at it) and marked synced once the document itself
has been written. Writes are single-statement upserts against the unique
``source_id`` column.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import IntegrityError

from ..db.models import BatchJob, LinkEntry
from ..db.schemas import (
    BatchStatus,
    ComprehensiveStatus,
    LinkEntryResponse,
    LinkStatus,
    SourceType,
)
from ..db.sqlite import Database
from ..utils import format_as_uuid, normalize_id, parse_timestamp, slugify_title, utcnow_iso

logger = logging.getLogger(__name__)

# Slug collisions from concurrent registrations are retried this many times
MAX_SLUG_ATTEMPTS = 5


def notion_url(source_id: str) -> str:
    """Public Notion URL for a source document."""
    return f"https://notion.so/{normalize_id(source_id)}"


class LinkRegistry:
    """Persistent source-ID to target mapping."""

    def __init__(self, db: Database):
        """Initialize the link registry.

        Args:
            db: Database instance
        """
        self.db = db

    # ========================================================================
    # Registration
    # ========================================================================

    def register(
        self,
        source_id: str,
        title: str,
        source_type: SourceType = SourceType.PAGE,
        slug: Optional[str] = None,
    ) -> LinkEntryResponse:
        """Create or update the entry for a source document.

        The existing slug is kept when the title did not change.

        Args:
            source_id: Notion page or database ID (any form)
            title: Source document title
            source_type: page or database
            slug: Explicit slug (generated from the title when omitted)

        Returns:
            The stored entry
        """
        normalized = normalize_id(source_id)
        if not normalized:
            raise ValueError("source_id cannot be empty")
        title = title or normalized

        existing = self.find_by_source_id(normalized)
        if slug is None and existing and existing.slug and existing.source_title == title:
            slug = existing.slug

        for attempt in range(MAX_SLUG_ATTEMPTS):
            candidate = slug or self._generate_slug(title, normalized)
            try:
                self._upsert(normalized, title, SourceType(source_type), candidate)
                return self.find_by_source_id(normalized)
            except IntegrityError:
                # Another source took the slug between the check and the write
                logger.debug("Slug '%s' taken, retrying (attempt %d)", candidate, attempt + 1)
                slug = None

        raise RuntimeError(f"Could not register link entry for {normalized}")

    def ensure_registered(
        self, source_id: str, source_type: SourceType = SourceType.PAGE
    ) -> LinkEntryResponse:
        """Register a discovered document without touching an existing entry.

        New entries use the ID as title and slug until the real title is known.
        """
        normalized = normalize_id(source_id)
        if not normalized:
            raise ValueError("source_id cannot be empty")

        now = utcnow_iso()
        stmt = (
            insert(LinkEntry)
            .values(
                source_id=normalized,
                source_id_uuid=format_as_uuid(normalized),
                source_title=normalized,
                source_type=SourceType(source_type).value,
                source_url=notion_url(normalized),
                slug=normalized,
                sync_status=LinkStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing()
        )
        with self.db.get_session() as session:
            session.execute(stmt)

        return self.find_by_source_id(normalized)

    def _upsert(self, source_id: str, title: str, source_type: SourceType, slug: str) -> None:
        now = utcnow_iso()
        stmt = insert(LinkEntry).values(
            source_id=source_id,
            source_id_uuid=format_as_uuid(source_id),
            source_title=title,
            source_type=source_type.value,
            source_url=notion_url(source_id),
            slug=slug,
            sync_status=LinkStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LinkEntry.source_id],
            set_={
                "source_title": stmt.excluded.source_title,
                "source_type": stmt.excluded.source_type,
                "slug": stmt.excluded.slug,
                "updated_at": now,
            },
        )
        with self.db.get_session() as session:
            session.execute(stmt)

    def _generate_slug(self, title: str, source_id: str) -> str:
        """Unique slug from a title, with -N suffixes when taken."""
        base_slug = slugify_title(title) or source_id
        slug = base_slug
        counter = 1
        while self._slug_taken(slug, source_id):
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    def _slug_taken(self, slug: str, source_id: str) -> bool:
        with self.db.get_session() as session:
            owner = session.execute(
                select(LinkEntry.source_id).where(LinkEntry.slug == slug)
            ).scalar_one_or_none()
        return owner is not None and owner != source_id

    # ========================================================================
    # Lookups
    # ========================================================================

    def find_by_source_id(self, source_id: str) -> Optional[LinkEntryResponse]:
        """Find an entry by source ID (dashed or not)."""
        normalized = normalize_id(source_id)
        if not normalized:
            return None
        with self.db.get_session() as session:
            entry = session.execute(
                select(LinkEntry).where(
                    (LinkEntry.source_id == normalized)
                    | (LinkEntry.source_id_uuid == format_as_uuid(normalized))
                )
            ).scalar_one_or_none()
            return LinkEntryResponse.model_validate(entry) if entry else None

    def find_by_slug(self, slug: str) -> Optional[LinkEntryResponse]:
        """Find an entry by slug."""
        if not slug:
            return None
        with self.db.get_session() as session:
            entry = session.execute(
                select(LinkEntry).where(LinkEntry.slug == slug)
            ).scalar_one_or_none()
            return LinkEntryResponse.model_validate(entry) if entry else None

    def get_slug_for_source_id(self, source_id: str) -> Optional[str]:
        """Slug of a source document, if registered."""
        entry = self.find_by_source_id(source_id)
        return entry.slug if entry else None

    def list_entries(self, status: Optional[LinkStatus] = None) -> list[LinkEntryResponse]:
        """All entries, optionally filtered by sync status."""
        with self.db.get_session() as session:
            stmt = select(LinkEntry).order_by(LinkEntry.source_title)
            if status is not None:
                stmt = stmt.where(LinkEntry.sync_status == LinkStatus(status).value)
            return [
                LinkEntryResponse.model_validate(e) for e in session.execute(stmt).scalars()
            ]

    # ========================================================================
    # Sync state
    # ========================================================================

    def _update(self, source_id: str, **values) -> bool:
        normalized = normalize_id(source_id)
        values["updated_at"] = utcnow_iso()
        with self.db.get_session() as session:
            result = session.execute(
                update(LinkEntry).where(LinkEntry.source_id == normalized).values(**values)
            )
            return result.rowcount > 0

    def mark_as_synced(
        self, source_id: str, document_id: int, target_type: str = "post"
    ) -> bool:
        """Point an entry at its target document."""
        return self._update(
            source_id,
            target_document_id=document_id,
            target_type=target_type,
            sync_status=LinkStatus.SYNCED.value,
        )

    def update_sync_timestamps(
        self, source_id: str, source_last_edited: Optional[str], target_last_synced: str
    ) -> bool:
        """Record sync times and clear any previous error."""
        return self._update(
            source_id,
            source_last_edited=source_last_edited,
            target_last_synced=target_last_synced,
            sync_error=None,
        )

    def update_sync_error(self, source_id: str, error_message: str) -> bool:
        """Record the error of the last failed sync."""
        return self._update(source_id, sync_error=error_message)

    def increment_access_count(self, source_id: str) -> bool:
        """Count one routing lookup."""
        normalized = normalize_id(source_id)
        with self.db.get_session() as session:
            result = session.execute(
                update(LinkEntry)
                .where(LinkEntry.source_id == normalized)
                .values(
                    access_count=LinkEntry.access_count + 1,
                    last_accessed_at=utcnow_iso(),
                )
            )
            return result.rowcount > 0

    def get_comprehensive_status(self, source_id: str) -> ComprehensiveStatus:
        """Detailed sync state of a source document.

        Order of precedence: an active batch means syncing, then a recorded
        error means failed, then a source edit after the last sync means
        outdated.
        """
        entry = self.find_by_source_id(source_id)
        if entry is None:
            return ComprehensiveStatus.NOT_SYNCED

        if self._has_active_batch(entry.source_id):
            return ComprehensiveStatus.SYNCING

        if entry.sync_error:
            return ComprehensiveStatus.FAILED

        if entry.sync_status == LinkStatus.SYNCED:
            edited = parse_timestamp(entry.source_last_edited)
            synced = parse_timestamp(entry.target_last_synced)
            if edited and synced and edited > synced:
                return ComprehensiveStatus.OUTDATED
            return ComprehensiveStatus.SYNCED

        return ComprehensiveStatus.NOT_SYNCED

    def _has_active_batch(self, source_id: str) -> bool:
        with self.db.get_session() as session:
            active = session.execute(
                select(BatchJob.batch_id).where(
                    BatchJob.source_database_id == source_id,
                    BatchJob.status.in_(
                        [BatchStatus.QUEUED.value, BatchStatus.PROCESSING.value]
                    ),
                )
            ).first()
            return active is not None
