"""Tests for the target document store."""

import pytest

from notionpress.db.schemas import DocumentStatus, DocumentType
from notionpress.errors import WriteError
from notionpress.store import DocumentStore, DuplicateSourceError

from builders import CHILD_ID, OTHER_ID

DASHED = "01234567-89ab-cdef-0123-456789abcdef"


class TestCreate:
    """Tests for document creation."""

    def test_create_draft_with_sync_record(self, store: DocumentStore):
        document = store.create(
            "Hello", "<p>Hi</p>", DASHED, source_last_edited_at="2025-01-02T10:00:00.000Z"
        )

        assert document.id > 0
        assert document.status == DocumentStatus.DRAFT
        assert document.doc_type == DocumentType.POST

        record = store.get_sync_record(CHILD_ID)
        assert record.document_id == document.id
        assert record.source_page_id == CHILD_ID
        assert record.source_last_edited_at == "2025-01-02T10:00:00.000Z"

    def test_find_by_dashed_or_plain_id(self, store: DocumentStore):
        created = store.create("Hello", "", CHILD_ID)
        assert store.find_by_source_page_id(DASHED).id == created.id
        assert store.find_by_source_page_id(CHILD_ID).id == created.id

    def test_duplicate_source_rejected(self, store: DocumentStore):
        first = store.create("Hello", "", CHILD_ID)

        with pytest.raises(DuplicateSourceError) as exc_info:
            store.create("Hello again", "", DASHED)

        assert exc_info.value.document_id == first.id
        assert exc_info.value.stage == "write"
        assert len(store.list_documents()) == 1

    def test_meta_round_trip(self, store: DocumentStore):
        document = store.create("Hello", "", CHILD_ID, meta={"source_url": "https://notion.so/x"})
        assert store.get(document.id).meta == {"source_url": "https://notion.so/x"}


class TestUpdate:
    """Tests for document updates."""

    def test_update_content_keeps_status(self, db, store: DocumentStore):
        from notionpress.db.models import Document

        document = store.create("Hello", "<p>old</p>", CHILD_ID)
        with db.get_session() as session:
            session.get(Document, document.id).status = DocumentStatus.PUBLISHED.value

        updated = store.update(document.id, title="Hello 2", content="<p>new</p>")

        assert updated.title == "Hello 2"
        assert updated.content == "<p>new</p>"
        assert updated.status == DocumentStatus.PUBLISHED

    def test_update_merges_meta(self, store: DocumentStore):
        document = store.create("Db", "", CHILD_ID, meta={"schema": {"Name": "title"}})

        updated = store.update(document.id, meta={"row_count": 3})

        assert updated.meta == {"schema": {"Name": "title"}, "row_count": 3}

    def test_update_missing_document(self, store: DocumentStore):
        with pytest.raises(WriteError, match="not found"):
            store.update(999, content="x")

    def test_upsert_sync_record(self, store: DocumentStore):
        document = store.create("Hello", "", CHILD_ID, source_last_edited_at="2025-01-01T00:00:00.000Z")
        before = store.get_sync_record(CHILD_ID).last_synced_at

        store.upsert_sync_record(document.id, DASHED, "2025-02-01T00:00:00.000Z")

        record = store.get_sync_record(CHILD_ID)
        assert record.source_last_edited_at == "2025-02-01T00:00:00.000Z"
        assert record.last_synced_at >= before


class TestListAndRender:
    """Tests for listing and rendering."""

    def test_list_by_type(self, store: DocumentStore):
        store.create("Post", "", CHILD_ID)
        store.create("Tasks", "", OTHER_ID, doc_type=DocumentType.DATABASE)

        databases = store.list_documents(DocumentType.DATABASE)

        assert [d.title for d in databases] == ["Tasks"]
        assert len(store.list_documents()) == 2

    def test_render_without_media(self, store: DocumentStore):
        document = store.create("Hello", "<p>Hi</p>", CHILD_ID)
        assert store.render(document.id) == "<p>Hi</p>"

    def test_render_resolves_placeholders(self, store: DocumentStore, media, media_registry):
        media_registry.register("blk1", "https://x/a.png", "/tmp/blk1.png", "https://blog.example.com/media/blk1.png")
        document = store.create("Hello", '<img src="notion-media://blk1"/>', CHILD_ID)

        assert store.render(document.id, media) == (
            '<img src="https://blog.example.com/media/blk1.png"/>'
        )

    def test_render_missing(self, store: DocumentStore):
        assert store.render(123) is None
