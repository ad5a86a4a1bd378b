"""Tests for the database row repository."""

import pytest

from notionpress.rows import RowRepository
from notionpress.store import DocumentStore

from builders import OTHER_ID, normalized_rows


@pytest.fixture
def parent_id(store: DocumentStore) -> int:
    """ID of a database document."""
    return store.create("Tasks", "", OTHER_ID).id


@pytest.fixture
def rows(db) -> RowRepository:
    return RowRepository(db)


def _load(rows: RowRepository, parent_id: int, count: int) -> None:
    for entry in normalized_rows(count):
        rows.upsert(
            parent_id,
            entry["id"],
            entry["properties"],
            {
                "title": entry["properties"]["Name"],
                "status": entry["properties"]["Status"],
                "created_time": entry["created_time"],
                "last_edited_time": entry["last_edited_time"],
            },
        )


class TestUpsert:
    """Tests for inserting and replacing rows."""

    def test_insert(self, rows: RowRepository, parent_id: int):
        rows.upsert(parent_id, "a" * 32, {"Name": "First", "Tags": ["x"]}, {"title": "First"})

        row = rows.get_row_by_source_id("a" * 32)
        assert row.title == "First"
        assert row.properties == {"Name": "First", "Tags": ["x"]}
        assert row.parent_document_id == parent_id

    def test_upsert_replaces_without_duplicating(self, rows: RowRepository, parent_id: int):
        rows.upsert(parent_id, "a" * 32, {"Name": "First", "Old": 1}, {"title": "First", "status": "Todo"})
        rows.upsert(parent_id, "a" * 32, {"Name": "Renamed"}, {"title": "Renamed"})

        assert rows.count_rows(parent_id) == 1
        row = rows.get_row_by_source_id("a" * 32, parent_id)
        assert row.title == "Renamed"
        assert row.properties == {"Name": "Renamed"}
        assert row.status is None

    def test_missing_title_defaults(self, rows: RowRepository, parent_id: int):
        rows.upsert(parent_id, "b" * 32, {})
        assert rows.get_row_by_source_id("b" * 32).title == "Untitled"

    def test_same_row_in_two_databases(self, rows: RowRepository, store: DocumentStore, parent_id: int):
        other_parent = store.create("Other", "", "c" * 32).id
        rows.upsert(parent_id, "a" * 32, {}, {"title": "One"})
        rows.upsert(other_parent, "a" * 32, {}, {"title": "Two"})

        assert rows.count_rows(parent_id) == 1
        assert rows.get_row_by_source_id("a" * 32, other_parent).title == "Two"


class TestQueries:
    """Tests for filtering, paging and aggregate queries."""

    def test_paging_and_order(self, rows: RowRepository, parent_id: int):
        _load(rows, parent_id, 30)

        first_page = rows.get_rows(parent_id, limit=10)
        second_page = rows.get_rows(parent_id, limit=10, offset=10)

        assert len(first_page) == 10
        assert not {r.id for r in first_page} & {r.id for r in second_page}
        edited = [r.last_edited_time for r in first_page + second_page]
        assert edited == sorted(edited, reverse=True)

    def test_status_filter(self, rows: RowRepository, parent_id: int):
        _load(rows, parent_id, 10)
        assert rows.count_rows(parent_id, status="Done") == 5
        assert all(r.status == "Done" for r in rows.get_rows(parent_id, status="Done"))

    def test_search_is_case_insensitive(self, rows: RowRepository, parent_id: int):
        _load(rows, parent_id, 12)
        titles = {r.title for r in rows.get_rows(parent_id, search="row 1")}
        assert titles == {"Row 1", "Row 10", "Row 11"}

    def test_distinct_statuses(self, rows: RowRepository, parent_id: int):
        _load(rows, parent_id, 4)
        rows.upsert(parent_id, "f" * 32, {}, {"title": "No status"})
        assert rows.get_distinct_statuses(parent_id) == ["Done", "Todo"]

    def test_modified_after(self, rows: RowRepository, parent_id: int):
        _load(rows, parent_id, 5)
        recent = rows.get_rows_modified_after(parent_id, "2025-01-03T00:00:00.000Z")
        assert {r.title for r in recent} == {"Row 2", "Row 3", "Row 4"}

    def test_delete_rows(self, rows: RowRepository, parent_id: int):
        _load(rows, parent_id, 3)
        assert rows.delete_rows(parent_id) == 3
        assert rows.count_rows(parent_id) == 0
