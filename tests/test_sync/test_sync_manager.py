"""Tests for page sync orchestration."""

from unittest.mock import MagicMock

import pytest

from notionpress.blocks import BlockConverter, BlockConverterRegistry, ConversionContext, SourceBlock
from notionpress.db.schemas import ComprehensiveStatus, LinkStatus
from notionpress.errors import WriteError
from notionpress.router import LinkRegistry, LinkResolver
from notionpress.store import DocumentStore
from notionpress.sync import ContentFetcher, SyncManager

from builders import (
    CHILD_ID,
    PAGE_ID,
    SITE_URL,
    FakeNotionClient,
    image,
    paragraph,
    raw_block,
    span,
)

HELLO_CONTENT = (
    "<!-- wp:paragraph -->\n<p>Hi <strong>there</strong></p>\n<!-- /wp:paragraph -->\n\n"
    "<!-- Unsupported Notion block: embed (ID: e1) -->\n\n"
)


class RacingStore(DocumentStore):
    """Store whose first lookup misses, as if another sync wrote in between."""

    def __init__(self, db):
        super().__init__(db)
        self.hide_next_lookup = False

    def find_by_source_page_id(self, source_page_id):
        if self.hide_next_lookup:
            self.hide_next_lookup = False
            return None
        return super().find_by_source_page_id(source_page_id)


class ExplodingConverter(BlockConverter):
    """Converter that fails on every paragraph."""

    block_types = ("paragraph",)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        raise KeyError("rich_text")


@pytest.fixture
def hello_page(notion: FakeNotionClient) -> FakeNotionClient:
    """The "Hello" page: one formatted paragraph and one embed."""
    notion.add_page(
        PAGE_ID,
        "Hello",
        [
            paragraph("p1", span("Hi "), span("there", bold=True)),
            raw_block("e1", "embed", {"url": "https://example.com/embed"}),
        ],
    )
    return notion


@pytest.fixture
def manager(db, notion, store, link_registry, resolver) -> SyncManager:
    return SyncManager(
        ContentFetcher(notion, max_batches=10),
        db=db,
        store=store,
        links=link_registry,
        resolver=resolver,
    )


class TestSyncPage:
    """Tests for the happy path."""

    def test_first_sync_creates_draft(self, manager: SyncManager, hello_page, store: DocumentStore):
        result = manager.sync_page(PAGE_ID)

        assert result.success
        assert result.created
        assert result.error is None
        document = store.get(result.target_document_id)
        assert document.title == "Hello"
        assert document.content == HELLO_CONTENT
        assert document.status.value == "draft"
        assert document.meta["source_url"] == f"https://www.notion.so/{PAGE_ID}"

    def test_sync_is_idempotent(self, manager: SyncManager, hello_page, store: DocumentStore):
        first = manager.sync_page(PAGE_ID)
        second = manager.sync_page(PAGE_ID)

        assert second.success
        assert not second.created
        assert second.target_document_id == first.target_document_id
        assert len(store.list_documents()) == 1
        assert store.get(first.target_document_id).content == HELLO_CONTENT

    def test_update_picks_up_edits(self, manager: SyncManager, hello_page, store: DocumentStore):
        first = manager.sync_page(PAGE_ID)
        hello_page.children[PAGE_ID] = [paragraph("p1", span("Changed"))]
        hello_page.pages[PAGE_ID]["last_edited_time"] = "2025-02-01T00:00:00.000Z"

        manager.sync_page(PAGE_ID)

        assert "<p>Changed</p>" in store.get(first.target_document_id).content
        record = store.get_sync_record(PAGE_ID)
        assert record.source_last_edited_at == "2025-02-01T00:00:00.000Z"

    def test_registers_link_entry(self, manager: SyncManager, hello_page, link_registry: LinkRegistry):
        result = manager.sync_page(PAGE_ID)

        entry = link_registry.find_by_source_id(PAGE_ID)
        assert entry.sync_status == LinkStatus.SYNCED
        assert entry.target_document_id == result.target_document_id
        assert entry.slug == "hello"
        assert link_registry.get_comprehensive_status(PAGE_ID) == ComprehensiveStatus.SYNCED

    def test_child_page_link_resolves_after_child_sync(
        self, manager: SyncManager, notion: FakeNotionClient, resolver: LinkResolver
    ):
        notion.add_page(PAGE_ID, "Parent", [raw_block(CHILD_ID, "child_page", {"title": "Child"})])
        notion.add_page(CHILD_ID, "Child", [paragraph("c1", span("inside"))])

        manager.sync_page(PAGE_ID)
        assert resolver.route("/notion/child") == f"https://notion.so/{CHILD_ID}"

        manager.sync_page(CHILD_ID)
        assert resolver.route("/notion/child") == f"{SITE_URL}/child/"

    def test_concurrent_create_falls_back_to_update(self, db, hello_page, link_registry, resolver):
        racing = RacingStore(db)
        manager = SyncManager(
            ContentFetcher(hello_page, max_batches=10),
            db=db,
            store=racing,
            links=link_registry,
            resolver=resolver,
        )
        first = manager.sync_page(PAGE_ID)

        racing.hide_next_lookup = True
        second = manager.sync_page(PAGE_ID)

        assert second.success
        assert not second.created
        assert second.target_document_id == first.target_document_id
        assert len(racing.list_documents()) == 1

    def test_deferred_images(self, db, notion, store, link_registry, resolver, media, queue):
        notion_image = "https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/a.png?sig=1"
        notion.add_page(PAGE_ID, "Photos", [image("img1", notion_image)])
        manager = SyncManager(
            ContentFetcher(notion, max_batches=10),
            db=db,
            store=store,
            links=link_registry,
            resolver=resolver,
            media=media,
        )

        result = manager.sync_page(PAGE_ID)

        assert "notion-media://img1" in store.get(result.target_document_id).content
        queue.run_until_idle()
        rendered = store.render(result.target_document_id, media)
        assert f"{SITE_URL}/media/img1.png" in rendered
        assert "notion-media://" not in rendered


class TestSyncFailures:
    """Tests for failures reported by stage."""

    def test_invalid_id_fails_before_fetch(self, manager: SyncManager, notion: FakeNotionClient):
        result = manager.sync_page("bad id!")

        assert not result.success
        assert result.error_kind == "validation"
        assert "invalid characters" in result.error
        assert notion.calls == []

    def test_empty_id(self, manager: SyncManager):
        result = manager.sync_page("")
        assert result.error_kind == "validation"
        assert result.error == "Notion page ID cannot be empty."

    def test_missing_page(self, manager: SyncManager, store: DocumentStore):
        result = manager.sync_page("deadbeef")

        assert not result.success
        assert result.error_kind == "fetch"
        assert "may not exist" in result.error
        assert store.list_documents() == []

    def test_conversion_failure(self, db, hello_page, store, link_registry, resolver):
        manager = SyncManager(
            ContentFetcher(hello_page, max_batches=10),
            db=db,
            converter=BlockConverterRegistry([ExplodingConverter()]),
            store=store,
            links=link_registry,
            resolver=resolver,
        )

        result = manager.sync_page(PAGE_ID)

        assert result.error_kind == "convert"
        assert result.error.startswith("Block conversion failed:")
        assert store.list_documents() == []
        assert link_registry.get_comprehensive_status(PAGE_ID) == ComprehensiveStatus.FAILED

    def test_write_failure(self, db, hello_page, link_registry, resolver):
        store = MagicMock(spec=DocumentStore)
        store.find_by_source_page_id.return_value = None
        store.create.side_effect = WriteError("WordPress post creation failed: disk full")
        manager = SyncManager(
            ContentFetcher(hello_page, max_batches=10),
            db=db,
            store=store,
            links=link_registry,
            resolver=resolver,
        )

        result = manager.sync_page(PAGE_ID)

        assert result.error_kind == "write"
        assert "disk full" in result.error

    def test_unexpected_exception(self, db, store, link_registry, resolver):
        fetcher = MagicMock(spec=ContentFetcher)
        fetcher.fetch_page_properties.side_effect = RuntimeError("socket closed")
        manager = SyncManager(fetcher, db=db, store=store, links=link_registry, resolver=resolver)

        result = manager.sync_page(PAGE_ID)

        assert not result.success
        assert result.error_kind == "unexpected"
        assert result.error == (
            "Sync failed with an unexpected error (RuntimeError). See the log for details."
        )
        assert "socket closed" not in result.error

    def test_unreachable_notion_is_a_fetch_failure(self, db, store, link_registry, resolver, unreachable_notion):
        manager = SyncManager(
            ContentFetcher(unreachable_notion, max_batches=5),
            db=db,
            store=store,
            links=link_registry,
            resolver=resolver,
        )

        result = manager.sync_page(PAGE_ID)

        assert not result.success
        assert result.error_kind == "fetch"
        assert "Could not connect to Notion" in result.error
        assert "Errno" not in result.error
        assert store.list_documents() == []


class TestSyncPagesAndStatus:
    """Tests for bulk sync and status lookups."""

    def test_sync_pages_in_order(self, manager: SyncManager, hello_page):
        results = manager.sync_pages([PAGE_ID, "deadbeef"])

        assert [r.success for r in results] == [True, False]
        assert results[1].source_page_id == "deadbeef"

    def test_status(self, manager: SyncManager, hello_page):
        assert manager.get_sync_status(PAGE_ID).is_synced is False

        result = manager.sync_page(PAGE_ID)
        status = manager.get_sync_status(PAGE_ID)

        assert status.is_synced
        assert status.target_document_id == result.target_document_id
        assert status.last_synced_at is not None

    def test_status_empty_id(self, manager: SyncManager):
        assert manager.get_sync_status("").is_synced is False
