"""Builders for raw Notion payloads and in-memory test doubles."""

from typing import Optional

from notionpress.api.notion import NotionNotFoundError
from notionpress.blocks import SourceBlock

SITE_URL = "https://blog.example.com"

PAGE_ID = "abc123"
CHILD_ID = "0123456789abcdef0123456789abcdef"
OTHER_ID = "fedcba9876543210fedcba9876543210"


# ============================================================================
# Notion Payload Builders
# ============================================================================


def span(
    content: str,
    bold: bool = False,
    italic: bool = False,
    code: bool = False,
    strikethrough: bool = False,
    underline: bool = False,
    link: Optional[str] = None,
) -> dict:
    """Build one rich-text span."""
    return {
        "type": "text",
        "text": {"content": content, "link": {"url": link} if link else None},
        "annotations": {
            "bold": bold,
            "italic": italic,
            "strikethrough": strikethrough,
            "underline": underline,
            "code": code,
            "color": "default",
        },
        "plain_text": content,
        "href": link,
    }


def raw_block(block_id: str, block_type: str, payload: Optional[dict] = None, **extra) -> dict:
    """Build a raw block object as returned by the block-children endpoint."""
    block = {
        "object": "block",
        "id": block_id,
        "type": block_type,
        "has_children": False,
        "created_time": "2025-01-01T10:00:00.000Z",
        "last_edited_time": "2025-01-02T10:00:00.000Z",
        block_type: payload if payload is not None else {},
    }
    block.update(extra)
    return block


def paragraph(block_id: str, *spans: dict) -> dict:
    """Build a raw paragraph block."""
    return raw_block(block_id, "paragraph", {"rich_text": list(spans), "color": "default"})


def bulleted(block_id: str, text: str, **extra) -> dict:
    """Build a raw bulleted list item."""
    return raw_block(block_id, "bulleted_list_item", {"rich_text": [span(text)]}, **extra)


def image(block_id: str, url: str, image_type: str = "file", caption: str = "") -> dict:
    """Build a raw image block."""
    payload = {
        "type": image_type,
        image_type: {"url": url},
        "caption": [span(caption)] if caption else [],
    }
    return raw_block(block_id, "image", payload)


def block(raw: dict) -> SourceBlock:
    """Parse a raw block."""
    return SourceBlock.from_api_response(raw)


def page_object(page_id: str, title: str, last_edited: str = "2025-01-02T10:00:00.000Z") -> dict:
    """Build a raw page object."""
    return {
        "object": "page",
        "id": page_id,
        "created_time": "2025-01-01T10:00:00.000Z",
        "last_edited_time": last_edited,
        "url": f"https://www.notion.so/{page_id}",
        "icon": None,
        "cover": None,
        "parent": {"type": "workspace", "workspace": True},
        "properties": {
            "title": {"id": "title", "type": "title", "title": [span(title)] if title else []},
        },
    }


def row_object(row_id: str, name: str, status: Optional[str] = None, **properties) -> dict:
    """Build a raw database row."""
    props = {"Name": {"id": "title", "type": "title", "title": [span(name)]}}
    if status is not None:
        props["Status"] = {"id": "st", "type": "status", "status": {"name": status}}
    props.update(properties)
    return {
        "object": "page",
        "id": row_id,
        "created_time": "2025-01-01T10:00:00.000Z",
        "last_edited_time": "2025-01-05T10:00:00.000Z",
        "properties": props,
    }


def database_object(database_id: str, title: str) -> dict:
    """Build a raw database object."""
    return {
        "object": "database",
        "id": database_id,
        "title": [span(title)],
        "last_edited_time": "2025-01-05T10:00:00.000Z",
        "url": f"https://www.notion.so/{database_id}",
        "properties": {
            "Name": {"id": "title", "type": "title", "title": {}},
            "Status": {"id": "st", "type": "status", "status": {}},
        },
    }


def normalized_rows(count: int) -> list[dict]:
    """Normalized rows as produced by DatabaseFetcher.normalize_entry."""
    return [
        {
            "id": f"{i:032x}",
            "properties": {"Name": f"Row {i}", "Status": "Done" if i % 2 else "Todo"},
            "created_time": "2025-01-01T10:00:00.000Z",
            "last_edited_time": f"2025-01-{(i % 28) + 1:02d}T10:00:00.000Z",
        }
        for i in range(count)
    ]


# ============================================================================
# Test Doubles
# ============================================================================


class FakeClock:
    """Manually advanced time source for the job queue."""

    def __init__(self, now: float = 1_000.0):
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeNotionClient:
    """In-memory stand-in for NotionClient.

    Children and rows are served in pages of ``page_size`` with string
    cursors. Block IDs in ``endless`` always report more results.
    """

    def __init__(self, page_size: int = 100):
        self.page_size = page_size
        self.pages: dict[str, dict] = {}
        self.children: dict[str, list[dict]] = {}
        self.databases: dict[str, dict] = {}
        self.rows: dict[str, list[dict]] = {}
        self.calls: list[tuple] = []
        self.endless: set[str] = set()

    def add_page(self, page_id: str, title: str, blocks: Optional[list[dict]] = None, **kwargs) -> None:
        self.pages[page_id] = page_object(page_id, title, **kwargs)
        self.children[page_id] = blocks or []

    def add_database(self, database_id: str, title: str, rows: list[dict]) -> None:
        self.databases[database_id] = database_object(database_id, title)
        self.rows[database_id] = rows

    def _paginate(self, items: list[dict], cursor: Optional[str]) -> dict:
        start = int(cursor) if cursor else 0
        end = start + self.page_size
        has_more = end < len(items)
        return {
            "object": "list",
            "results": items[start:end],
            "has_more": has_more,
            "next_cursor": str(end) if has_more else None,
        }

    def get_page(self, page_id: str) -> dict:
        self.calls.append(("get_page", page_id))
        if page_id not in self.pages:
            raise NotionNotFoundError(f"Resource not found: {page_id}", status=404)
        return self.pages[page_id]

    def get_block_children(self, block_id: str, cursor: Optional[str] = None) -> dict:
        self.calls.append(("get_block_children", block_id, cursor))
        if block_id in self.endless:
            n = int(cursor or 0)
            return {
                "results": [paragraph(f"{block_id}-{n}", span(f"block {n}"))],
                "has_more": True,
                "next_cursor": str(n + 1),
            }
        return self._paginate(self.children.get(block_id, []), cursor)

    def query_database(self, database_id, cursor=None, filter=None, sorts=None) -> dict:
        self.calls.append(("query_database", database_id, cursor))
        if database_id not in self.databases:
            raise NotionNotFoundError(f"Resource not found: {database_id}", status=404)
        return self._paginate(self.rows.get(database_id, []), cursor)

    def retrieve_database(self, database_id: str) -> dict:
        self.calls.append(("retrieve_database", database_id))
        if database_id not in self.databases:
            raise NotionNotFoundError(f"Resource not found: {database_id}", status=404)
        return self.databases[database_id]

    def search(self, object_type="page", page_size=100, cursor=None, query=None) -> dict:
        self.calls.append(("search", object_type, cursor))
        if object_type == "database":
            items = list(self.databases.values())
        else:
            items = sorted(
                self.pages.values(), key=lambda p: p["last_edited_time"], reverse=True
            )
        return self._paginate(items[:page_size], cursor)

    def block_fetches(self) -> int:
        return sum(1 for call in self.calls if call[0] == "get_block_children")
