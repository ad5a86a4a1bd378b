"""Media registry: one stored asset per source block.

Consulted before every download so repeated syncs of the same page do not
fetch the same image again.
"""

from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert

from ..db.models import MediaEntry
from ..db.schemas import MediaEntryResponse, MediaStatus
from ..db.sqlite import Database
from ..utils import normalize_id, utcnow_iso


def strip_query(url: str) -> str:
    """URL without query string or fragment.

    Notion's signed URLs change their query on every fetch while the path
    identifies the file.
    """
    parts = urlsplit(url or "")
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class MediaRegistry:
    """Persistent source block to local media mapping."""

    def __init__(self, db: Database):
        """Initialize the media registry.

        Args:
            db: Database instance
        """
        self.db = db

    def find(self, source_block_id: str) -> Optional[MediaEntryResponse]:
        """Entry for a block, if any."""
        with self.db.get_session() as session:
            entry = session.execute(
                select(MediaEntry).where(
                    MediaEntry.source_block_id == normalize_id(source_block_id)
                )
            ).scalar_one_or_none()
            return MediaEntryResponse.model_validate(entry) if entry else None

    def find_downloaded(self, source_block_id: str) -> Optional[MediaEntryResponse]:
        """Entry for a block if its file has been stored."""
        entry = self.find(source_block_id)
        if entry and entry.status == MediaStatus.DOWNLOADED:
            return entry
        return None

    def find_many(self, source_block_ids: list[str]) -> dict[str, MediaEntryResponse]:
        """Entries for several blocks, keyed by normalized block ID."""
        ids = [normalize_id(b) for b in source_block_ids if b]
        if not ids:
            return {}
        with self.db.get_session() as session:
            entries = session.execute(
                select(MediaEntry).where(MediaEntry.source_block_id.in_(ids))
            ).scalars()
            return {
                e.source_block_id: MediaEntryResponse.model_validate(e) for e in entries
            }

    def needs_redownload(self, source_block_id: str, url: str) -> bool:
        """Whether the block now points at a different file than the stored one."""
        entry = self.find(source_block_id)
        if entry is None:
            return False
        return strip_query(entry.source_url) != strip_query(url)

    # ========================================================================
    # Writes (single-statement upserts on source_block_id)
    # ========================================================================

    def _upsert(self, source_block_id: str, values: dict, update: dict) -> None:
        now = utcnow_iso()
        stmt = insert(MediaEntry).values(
            source_block_id=normalize_id(source_block_id),
            registered_at=now,
            updated_at=now,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[MediaEntry.source_block_id],
            set_={**update, "updated_at": now},
        )
        with self.db.get_session() as session:
            session.execute(stmt)

    def register(
        self,
        source_block_id: str,
        source_url: str,
        local_path: str,
        local_url: str,
        mime_type: Optional[str] = None,
    ) -> MediaEntryResponse:
        """Record a stored file for a block."""
        values = {
            "source_url": source_url,
            "local_path": local_path,
            "local_url": local_url,
            "mime_type": mime_type,
            "status": MediaStatus.DOWNLOADED.value,
            "last_error": None,
        }
        self._upsert(source_block_id, values, values)
        return self.find(source_block_id)

    def mark_pending(self, source_block_id: str, source_url: str) -> None:
        """Record that a download has been scheduled."""
        values = {"source_url": source_url, "status": MediaStatus.PENDING.value}
        self._upsert(source_block_id, values, values)

    def mark_failed(self, source_block_id: str, source_url: str, error: str) -> None:
        """Record a failed download."""
        self._upsert(
            source_block_id,
            {
                "source_url": source_url,
                "status": MediaStatus.FAILED.value,
                "error_count": 1,
                "last_error": error,
            },
            {
                "source_url": source_url,
                "status": MediaStatus.FAILED.value,
                "error_count": MediaEntry.error_count + 1,
                "last_error": error,
            },
        )
