"""Tests for database fetching and property flattening."""

import logging
from unittest.mock import MagicMock

import pytest

from notionpress.api.notion import NotionError
from notionpress.sync import DatabaseFetcher
from notionpress.sync.database_fetcher import (
    extract_database_title,
    extract_property_value,
    extract_row_title,
)

from builders import OTHER_ID, FakeNotionClient, row_object, span


class TestExtractPropertyValue:
    """Tests for property flattening."""

    @pytest.mark.parametrize(
        "prop,expected",
        [
            ({"type": "title", "title": [span("Buy "), span("milk")]}, "Buy milk"),
            ({"type": "rich_text", "rich_text": []}, ""),
            ({"type": "number", "number": 4.5}, 4.5),
            ({"type": "checkbox", "checkbox": True}, True),
            ({"type": "select", "select": {"name": "High"}}, "High"),
            ({"type": "select", "select": None}, None),
            ({"type": "status", "status": {"name": "Done"}}, "Done"),
            ({"type": "multi_select", "multi_select": [{"name": "a"}, {"name": "b"}]}, ["a", "b"]),
            ({"type": "date", "date": {"start": "2025-01-01", "end": None}}, "2025-01-01"),
            (
                {"type": "date", "date": {"start": "2025-01-01", "end": "2025-01-03"}},
                {"start": "2025-01-01", "end": "2025-01-03"},
            ),
            ({"type": "date", "date": None}, None),
            (
                {"type": "relation", "relation": [{"id": "01234567-89ab-cdef-0123-456789abcdef"}]},
                ["0123456789abcdef0123456789abcdef"],
            ),
            ({"type": "formula", "formula": {"type": "number", "number": 3}}, 3),
            ({"type": "rollup", "rollup": {"type": "array", "array": []}}, []),
            ({"type": "people", "people": [{"name": "Ada"}, {"id": "u2"}]}, ["Ada"]),
            (
                {"type": "files", "files": [{"name": "a.pdf", "file": {"url": "https://f/a.pdf"}}]},
                [{"name": "a.pdf", "url": "https://f/a.pdf"}],
            ),
            ({"type": "created_by", "created_by": {"name": "Ada"}}, "Ada"),
            ({"type": "unique_id", "unique_id": {"prefix": "TASK", "number": 7}}, "TASK-7"),
            ({"type": "unique_id", "unique_id": {"prefix": None, "number": 7}}, 7),
            ({"type": "url", "url": "https://example.com"}, "https://example.com"),
        ],
    )
    def test_types(self, prop, expected):
        assert extract_property_value(prop) == expected

    def test_unknown_type_becomes_string(self):
        assert extract_property_value({"type": "button", "button": {}}) == "{}"


class TestTitles:
    """Tests for title extraction."""

    def test_row_title_candidates(self):
        assert extract_row_title({"Name": "Row"}) == "Row"
        assert extract_row_title({"Title": "First", "Name": "Second"}) == "First"
        assert extract_row_title({"Other": "x"}) == "Untitled"

    def test_row_title_truncated(self):
        assert len(extract_row_title({"Name": "x" * 600})) == 500

    def test_database_title(self):
        assert extract_database_title({"title": [span("Tasks")]}) == "Tasks"
        assert extract_database_title({"title": []}) == "Untitled Database"


class TestDatabaseFetcher:
    """Tests for querying, schema and listing."""

    def test_query_paginates_and_normalizes(self):
        notion = FakeNotionClient(page_size=2)
        rows = [row_object(f"{i:032x}", f"Row {i}", status="Done") for i in range(5)]
        notion.add_database(OTHER_ID, "Tasks", rows)

        entries = DatabaseFetcher(notion, max_batches=10).query_database(OTHER_ID)

        assert len(entries) == 5
        assert entries[0] == {
            "id": f"{0:032x}",
            "properties": {"Name": "Row 0", "Status": "Done"},
            "created_time": "2025-01-01T10:00:00.000Z",
            "last_edited_time": "2025-01-05T10:00:00.000Z",
        }

    def test_query_cap(self, caplog: pytest.LogCaptureFixture):
        notion = FakeNotionClient(page_size=1)
        notion.add_database(OTHER_ID, "Tasks", [row_object(f"{i:032x}", "r") for i in range(5)])

        with caplog.at_level(logging.WARNING):
            entries = DatabaseFetcher(notion, max_batches=2).query_database(OTHER_ID)

        assert len(entries) == 2
        assert "Reached maximum batch limit (2)" in caplog.text

    def test_query_error_yields_empty(self, notion: FakeNotionClient):
        assert DatabaseFetcher(notion, max_batches=5).query_database("missing") == []

    def test_query_more_without_cursor_stops(self, caplog: pytest.LogCaptureFixture):
        client = MagicMock()
        client.query_database.return_value = {
            "results": [row_object(f"{1:032x}", "Only")],
            "has_more": True,
            "next_cursor": None,
        }

        with caplog.at_level(logging.WARNING):
            entries = DatabaseFetcher(client, max_batches=1).query_database(OTHER_ID)

        assert [e["properties"]["Name"] for e in entries] == ["Only"]
        assert client.query_database.call_count == 1
        assert f"more rows for database {OTHER_ID} without a cursor" in caplog.text
        assert "Reached maximum batch limit" not in caplog.text

    def test_query_unreachable_notion_yields_empty(self, unreachable_notion, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.ERROR):
            assert DatabaseFetcher(unreachable_notion, max_batches=5).query_database(OTHER_ID) == []
        assert "Could not reach Notion: ConnectError" in caplog.text

    def test_schema_and_list_unreachable_notion(self, unreachable_notion):
        fetcher = DatabaseFetcher(unreachable_notion, max_batches=5)
        assert fetcher.get_database_schema(OTHER_ID) is None
        assert fetcher.list_databases() == []

    def test_schema(self, notion: FakeNotionClient):
        notion.add_database(OTHER_ID, "Tasks", [])

        schema = DatabaseFetcher(notion, max_batches=5).get_database_schema(OTHER_ID)

        assert schema["title"] == "Tasks"
        assert schema["properties"] == {"Name": "title", "Status": "status"}

    def test_schema_missing(self, notion: FakeNotionClient):
        assert DatabaseFetcher(notion, max_batches=5).get_database_schema("missing") is None

    def test_list_databases(self, notion: FakeNotionClient):
        notion.add_database(OTHER_ID, "Tasks", [])
        databases = DatabaseFetcher(notion, max_batches=5).list_databases()
        assert databases == [
            {
                "id": OTHER_ID,
                "title": "Tasks",
                "last_edited_time": "2025-01-05T10:00:00.000Z",
                "url": f"https://www.notion.so/{OTHER_ID}",
            }
        ]

    def test_list_databases_error(self):
        client = MagicMock()
        client.search.side_effect = NotionError("Internal server error", status=500)
        assert DatabaseFetcher(client, max_batches=5).list_databases() == []
