"""Page sync orchestration.

``SyncManager.sync_page`` runs one page through validate, fetch, convert
and write, and always returns a ``SyncResult``. Failures are reported by
stage; nothing raised inside the pipeline escapes to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from tqdm import tqdm

from ..blocks.base import ConversionContext
from ..blocks.registry import BlockConverterRegistry, create_default_registry
from ..db.schemas import DocumentResponse, SourceType
from ..db.sqlite import Database, get_db
from ..errors import ConversionError, NotionPressError
from ..media.pipeline import MediaPipeline
from ..router.registry import LinkRegistry
from ..router.resolver import LinkResolver
from ..store.documents import DocumentStore, DuplicateSourceError
from ..utils import normalize_id, utcnow_iso, validate_page_id
from .fetcher import ContentFetcher, PageProperties

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one page sync."""

    success: bool
    target_document_id: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None  # validation, fetch, convert, write, unexpected
    created: bool = False
    source_page_id: Optional[str] = None


@dataclass
class SyncStatus:
    """Read-only sync state of a source page."""

    is_synced: bool
    target_document_id: Optional[int] = None
    last_synced_at: Optional[str] = None


class SyncManager:
    """Syncs Notion pages into target documents."""

    def __init__(
        self,
        fetcher: ContentFetcher,
        db: Optional[Database] = None,
        converter: Optional[BlockConverterRegistry] = None,
        store: Optional[DocumentStore] = None,
        links: Optional[LinkRegistry] = None,
        resolver: Optional[LinkResolver] = None,
        media: Optional[MediaPipeline] = None,
    ):
        """Initialize the sync manager.

        Args:
            fetcher: Content fetcher for the source API
            db: Database instance (uses the global one if not provided)
            converter: Block converter registry (default converters if not provided)
            store: Target document store
            links: Link registry
            resolver: Link resolver used to rewrite internal links
            media: Media pipeline; images are linked directly without one
        """
        self.db = db or get_db()
        self.fetcher = fetcher
        self.converter = converter or create_default_registry()
        self.store = store or DocumentStore(self.db)
        self.links = links or LinkRegistry(self.db)
        self.resolver = resolver or LinkResolver(self.links)
        self.media = media

    # ========================================================================
    # Sync
    # ========================================================================

    def sync_page(self, page_id: str) -> SyncResult:
        """Sync one page into a draft document.

        Args:
            page_id: Notion page ID, with or without dashes

        Returns:
            SyncResult; ``success`` is False with ``error`` set on any failure
        """
        normalized: Optional[str] = None
        try:
            normalized = validate_page_id(page_id)
            properties = self.fetcher.fetch_page_properties(normalized)
            blocks = self.fetcher.fetch_page_blocks(normalized)

            existing = self.store.find_by_source_page_id(normalized)
            entry = self.links.register(normalized, properties.title, SourceType.PAGE)

            context = ConversionContext(
                link_resolver=self.resolver,
                media=self.media,
                source_page_id=normalized,
                document_id=existing.id if existing else None,
            )
            try:
                content = self.converter.convert_blocks(blocks, context)
            except ConversionError as e:
                raise ConversionError(f"Block conversion failed: {e}") from e

            document, created = self._write(normalized, properties, content, entry.slug, existing)

            self.links.mark_as_synced(normalized, document.id)
            self.links.update_sync_timestamps(
                normalized, properties.last_edited_time, utcnow_iso()
            )
        except NotionPressError as e:
            logger.warning("Sync of page %s failed at %s: %s", page_id, e.stage, e)
            return self._failure(normalized, str(e), e.stage)
        except Exception as e:
            logger.exception("Unexpected error while syncing page %s", page_id)
            return self._failure(
                normalized,
                f"Sync failed with an unexpected error ({e.__class__.__name__}). See the log for details.",
                "unexpected",
            )

        logger.info(
            "%s document %d from page %s (%d blocks)",
            "Created" if created else "Updated",
            document.id,
            normalized,
            len(blocks),
        )
        return SyncResult(
            success=True,
            target_document_id=document.id,
            created=created,
            source_page_id=normalized,
        )

    def _write(
        self,
        source_page_id: str,
        properties: PageProperties,
        content: str,
        slug: Optional[str],
        existing: Optional[DocumentResponse],
    ) -> tuple[DocumentResponse, bool]:
        """Create or update the target document and its sync record."""
        meta = {
            key: value
            for key, value in {
                "source_url": properties.url,
                "icon": properties.icon,
                "cover": properties.cover,
            }.items()
            if value
        }

        if existing is None:
            try:
                document = self.store.create(
                    title=properties.title,
                    content=content,
                    source_page_id=source_page_id,
                    source_last_edited_at=properties.last_edited_time,
                    slug=slug,
                    meta=meta,
                )
                return document, True
            except DuplicateSourceError as e:
                # Another sync created it between the lookup and the insert
                logger.info("Page %s was synced concurrently, updating document %s",
                            source_page_id, e.document_id)
                existing = self.store.get(e.document_id)
                if existing is None:
                    raise

        document = self.store.update(
            existing.id, title=properties.title, content=content, slug=slug, meta=meta
        )
        self.store.upsert_sync_record(
            document.id, source_page_id, properties.last_edited_time
        )
        return document, False

    def _failure(self, source_page_id: Optional[str], error: str, kind: str) -> SyncResult:
        if source_page_id:
            try:
                self.links.update_sync_error(source_page_id, error)
            except Exception as e:
                logger.warning("Could not record sync error for %s: %s", source_page_id, e)
        return SyncResult(
            success=False, error=error, error_kind=kind, source_page_id=source_page_id
        )

    def sync_pages(
        self,
        page_ids: Iterable[str],
        show_progress: bool = False,
    ) -> list[SyncResult]:
        """Sync several pages in order.

        Args:
            page_ids: Notion page IDs
            show_progress: Show tqdm progress bar

        Returns:
            One result per page, in input order
        """
        page_ids = list(page_ids)
        results = []
        for page_id in tqdm(page_ids, desc="Syncing pages", disable=not show_progress):
            results.append(self.sync_page(page_id))

        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning("%d of %d pages failed to sync", failed, len(results))
        return results

    # ========================================================================
    # Status
    # ========================================================================

    def get_sync_status(self, page_id: str) -> SyncStatus:
        """Whether a page has a target document, without calling Notion."""
        normalized = normalize_id(page_id)
        if not normalized:
            return SyncStatus(is_synced=False)

        record = self.store.get_sync_record(normalized)
        if record is None:
            return SyncStatus(is_synced=False)

        return SyncStatus(
            is_synced=True,
            target_document_id=record.document_id,
            last_synced_at=record.last_synced_at,
        )
