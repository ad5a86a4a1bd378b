"""Storage for normalized Notion database rows.

Rows are keyed by (parent document, source row). An upsert replaces the
whole row; the source is authoritative, so nothing is merged.
"""

import json
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert

from ..db.models import DatabaseRow
from ..db.schemas import DatabaseRowResponse
from ..db.sqlite import Database
from ..utils import normalize_id, utcnow_iso


class RowRepository:
    """Upserts and queries database rows."""

    def __init__(self, db: Database):
        """Initialize the row repository.

        Args:
            db: Database instance
        """
        self.db = db

    def upsert(
        self,
        parent_document_id: int,
        source_row_id: str,
        properties: dict[str, Any],
        extracted: Optional[dict[str, Any]] = None,
    ) -> None:
        """Insert or fully replace one row in a single statement.

        Args:
            parent_document_id: Database document the row belongs to
            source_row_id: Notion page ID of the row
            properties: Flattened property values
            extracted: title, status, created_time and last_edited_time
        """
        extracted = extracted or {}
        values = {
            "properties": json.dumps(properties, default=str),
            "title": extracted.get("title") or "Untitled",
            "status": extracted.get("status"),
            "created_time": extracted.get("created_time"),
            "last_edited_time": extracted.get("last_edited_time"),
            "synced_at": utcnow_iso(),
        }
        stmt = insert(DatabaseRow).values(
            parent_document_id=parent_document_id,
            source_row_id=normalize_id(source_row_id),
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DatabaseRow.parent_document_id, DatabaseRow.source_row_id],
            set_=values,
        )
        with self.db.get_session() as session:
            session.execute(stmt)

    def _filtered(self, stmt, parent_document_id: int, status: Optional[str], search: Optional[str]):
        stmt = stmt.where(DatabaseRow.parent_document_id == parent_document_id)
        if status:
            stmt = stmt.where(DatabaseRow.status == status)
        if search:
            stmt = stmt.where(DatabaseRow.title.ilike(f"%{search}%"))
        return stmt

    def get_rows(
        self,
        parent_document_id: int,
        limit: int = 100,
        offset: int = 0,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[DatabaseRowResponse]:
        """Rows of a database, most recently edited first."""
        stmt = self._filtered(select(DatabaseRow), parent_document_id, status, search)
        stmt = (
            stmt.order_by(DatabaseRow.last_edited_time.desc(), DatabaseRow.id)
            .limit(limit)
            .offset(offset)
        )
        with self.db.get_session() as session:
            return [DatabaseRowResponse.model_validate(r) for r in session.execute(stmt).scalars()]

    def count_rows(
        self,
        parent_document_id: int,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> int:
        """Number of rows matching the filters."""
        stmt = self._filtered(
            select(func.count(DatabaseRow.id)), parent_document_id, status, search
        )
        with self.db.get_session() as session:
            return session.execute(stmt).scalar_one()

    def get_row_by_source_id(
        self, source_row_id: str, parent_document_id: Optional[int] = None
    ) -> Optional[DatabaseRowResponse]:
        """Row by Notion page ID, optionally within one database."""
        stmt = select(DatabaseRow).where(DatabaseRow.source_row_id == normalize_id(source_row_id))
        if parent_document_id is not None:
            stmt = stmt.where(DatabaseRow.parent_document_id == parent_document_id)
        with self.db.get_session() as session:
            row = session.execute(stmt.limit(1)).scalar_one_or_none()
            return DatabaseRowResponse.model_validate(row) if row else None

    def delete_rows(self, parent_document_id: int) -> int:
        """Delete every row of a database.

        Returns:
            Number of rows deleted
        """
        with self.db.get_session() as session:
            result = session.execute(
                delete(DatabaseRow).where(DatabaseRow.parent_document_id == parent_document_id)
            )
            return result.rowcount

    def get_distinct_statuses(self, parent_document_id: int) -> list[str]:
        """Status values present in a database, sorted."""
        with self.db.get_session() as session:
            return list(
                session.execute(
                    select(DatabaseRow.status)
                    .where(
                        DatabaseRow.parent_document_id == parent_document_id,
                        DatabaseRow.status.is_not(None),
                    )
                    .distinct()
                    .order_by(DatabaseRow.status)
                ).scalars()
            )

    def get_rows_modified_after(
        self, parent_document_id: int, timestamp: str
    ) -> list[DatabaseRowResponse]:
        """Rows edited in Notion after an ISO timestamp."""
        with self.db.get_session() as session:
            rows = session.execute(
                select(DatabaseRow)
                .where(
                    DatabaseRow.parent_document_id == parent_document_id,
                    DatabaseRow.last_edited_time > timestamp,
                )
                .order_by(DatabaseRow.last_edited_time.desc())
            ).scalars()
            return [DatabaseRowResponse.model_validate(r) for r in rows]
