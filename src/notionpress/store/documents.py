"""Target document store.

Documents are the synced counterparts of Notion pages and databases.
Each synced document carries one sync record keyed by the normalized
source page ID; the unique constraint on that column is the final guard
against two documents for the same page.
"""

import logging
from typing import TYPE_CHECKING, Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db.models import Document, SyncRecord
from ..db.schemas import DocumentResponse, DocumentStatus, DocumentType
from ..db.sqlite import Database
from ..errors import WriteError
from ..utils import normalize_id, utcnow_iso

if TYPE_CHECKING:
    from ..media.pipeline import MediaPipeline

logger = logging.getLogger(__name__)


class DuplicateSourceError(WriteError):
    """Raised when another document already holds the source page ID."""

    def __init__(self, source_page_id: str, document_id: Optional[int] = None):
        self.source_page_id = source_page_id
        self.document_id = document_id
        super().__init__(f"Source page {source_page_id} is already synced")


class DocumentStore:
    """Creates, updates and looks up target documents."""

    def __init__(self, db: Database):
        """Initialize the document store.

        Args:
            db: Database instance
        """
        self.db = db

    # ========================================================================
    # Lookups
    # ========================================================================

    def get(self, document_id: int) -> Optional[DocumentResponse]:
        """Get a document by ID."""
        with self.db.get_session() as session:
            document = session.get(Document, document_id)
            return DocumentResponse.model_validate(document) if document else None

    def find_by_source_page_id(self, source_page_id: str) -> Optional[DocumentResponse]:
        """Document synced from a source page, if any."""
        with self.db.get_session() as session:
            document = session.execute(
                select(Document)
                .join(SyncRecord, SyncRecord.document_id == Document.id)
                .where(SyncRecord.source_page_id == normalize_id(source_page_id))
            ).scalar_one_or_none()
            return DocumentResponse.model_validate(document) if document else None

    def get_sync_record(self, source_page_id: str) -> Optional[SyncRecord]:
        """Sync record for a source page (detached)."""
        with self.db.get_session() as session:
            record = session.execute(
                select(SyncRecord).where(
                    SyncRecord.source_page_id == normalize_id(source_page_id)
                )
            ).scalar_one_or_none()
            if record:
                session.expunge(record)
            return record

    def list_documents(
        self, doc_type: Optional[DocumentType] = None, limit: int = 100
    ) -> list[DocumentResponse]:
        """Documents, newest first."""
        with self.db.get_session() as session:
            stmt = select(Document).order_by(Document.updated_at.desc()).limit(limit)
            if doc_type is not None:
                stmt = stmt.where(Document.doc_type == DocumentType(doc_type).value)
            return [DocumentResponse.model_validate(d) for d in session.execute(stmt).scalars()]

    # ========================================================================
    # Writes
    # ========================================================================

    def create(
        self,
        title: str,
        content: str,
        source_page_id: str,
        source_last_edited_at: Optional[str] = None,
        slug: Optional[str] = None,
        doc_type: DocumentType = DocumentType.POST,
        meta: Optional[dict] = None,
    ) -> DocumentResponse:
        """Create a draft document together with its sync record.

        Raises:
            DuplicateSourceError: If the source page already has a document
            WriteError: If the store rejected the write
        """
        normalized = normalize_id(source_page_id)
        try:
            with self.db.get_session() as session:
                document = Document(
                    title=title,
                    content=content,
                    status=DocumentStatus.DRAFT.value,
                    doc_type=DocumentType(doc_type).value,
                    slug=slug,
                )
                document.set_meta(meta or {})
                session.add(document)
                session.flush()

                session.add(
                    SyncRecord(
                        document_id=document.id,
                        source_page_id=normalized,
                        last_synced_at=utcnow_iso(),
                        source_last_edited_at=source_last_edited_at,
                    )
                )
                session.flush()
                return DocumentResponse.model_validate(document)
        except IntegrityError as e:
            existing = self.find_by_source_page_id(normalized)
            if existing is not None:
                raise DuplicateSourceError(normalized, existing.id) from e
            raise WriteError(f"WordPress post creation failed: {e.orig}") from e
        except SQLAlchemyError as e:
            raise WriteError(f"WordPress post creation failed: {e}") from e

    def update(
        self,
        document_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        slug: Optional[str] = None,
        meta: Optional[dict] = None,
    ) -> DocumentResponse:
        """Update a document. The publication status is left unchanged.

        Raises:
            WriteError: If the document is gone or the write failed
        """
        try:
            with self.db.get_session() as session:
                document = session.get(Document, document_id)
                if document is None:
                    raise WriteError(f"WordPress post update failed: post {document_id} not found")

                if title is not None:
                    document.title = title
                if content is not None:
                    document.content = content
                if slug is not None:
                    document.slug = slug
                if meta is not None:
                    document.set_meta({**document.get_meta(), **meta})
                document.updated_at = utcnow_iso()
                session.flush()
                return DocumentResponse.model_validate(document)
        except SQLAlchemyError as e:
            raise WriteError(f"WordPress post update failed: {e}") from e

    def upsert_sync_record(
        self,
        document_id: int,
        source_page_id: str,
        source_last_edited_at: Optional[str] = None,
    ) -> None:
        """Write the three sync fields for a document's source page."""
        now = utcnow_iso()
        stmt = insert(SyncRecord).values(
            document_id=document_id,
            source_page_id=normalize_id(source_page_id),
            last_synced_at=now,
            source_last_edited_at=source_last_edited_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[SyncRecord.source_page_id],
            set_={
                "last_synced_at": now,
                "source_last_edited_at": stmt.excluded.source_last_edited_at,
            },
        )
        try:
            with self.db.get_session() as session:
                session.execute(stmt)
        except SQLAlchemyError as e:
            raise WriteError(f"Failed to record sync metadata: {e}") from e

    def render(
        self, document_id: int, media: Optional["MediaPipeline"] = None
    ) -> Optional[str]:
        """Document content with pending media placeholders resolved."""
        document = self.get(document_id)
        if document is None:
            return None
        if media is None:
            return document.content
        return media.resolve_placeholders(document.content)
