"""Page content fetching.

Wraps the Notion client with pagination and a degrade-to-empty policy:
block and page-list fetches log failures and return empty lists, while
``fetch_page_properties`` raises, since a missing page is an error but an
empty page is not.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..api.notion import NotionClient, NotionError
from ..blocks.base import BlockType, SourceBlock
from ..config import get_config
from ..errors import FetchError
from ..utils import normalize_id

logger = logging.getLogger(__name__)

# Children of these block types are rendered inline and fetched eagerly
NESTED_TYPES = tuple(
    t.value
    for t in (
        BlockType.BULLETED_LIST_ITEM,
        BlockType.NUMBERED_LIST_ITEM,
        BlockType.TABLE,
        BlockType.TOGGLE,
        BlockType.CALLOUT,
        BlockType.COLUMN_LIST,
        BlockType.COLUMN,
    )
)


@dataclass
class PageProperties:
    """Page metadata needed to write a document."""

    id: str
    title: str = "Untitled"
    created_time: Optional[str] = None
    last_edited_time: Optional[str] = None
    url: Optional[str] = None
    icon: Optional[dict] = None
    cover: Optional[dict] = None
    parent: dict = field(default_factory=dict)
    properties: dict = field(default_factory=dict)


@dataclass
class PageSummary:
    """One entry of the page list."""

    id: str
    title: str
    last_edited_time: Optional[str] = None
    url: Optional[str] = None


def extract_title(properties: dict[str, Any]) -> str:
    """Title from the title-typed property, or "Untitled"."""
    for prop in (properties or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            text = "".join(span.get("plain_text", "") for span in prop.get("title") or [])
            if text:
                return text
    return "Untitled"


class ContentFetcher:
    """Fetches page properties and block trees from Notion."""

    def __init__(
        self,
        client: NotionClient,
        max_batches: Optional[int] = None,
        fetch_nested: bool = True,
    ):
        """Initialize the content fetcher.

        Args:
            client: Notion API client
            max_batches: Pagination safety cap per page (uses config if not provided)
            fetch_nested: Also fetch children of lists, tables, toggles, callouts and columns
        """
        self.client = client
        self.max_batches = max_batches or get_config().max_block_batches
        self.fetch_nested = fetch_nested

    def fetch_page_properties(self, page_id: str) -> PageProperties:
        """Fetch page metadata.

        Raises:
            FetchError: If the page cannot be retrieved
        """
        normalized = normalize_id(page_id)
        if not normalized:
            raise FetchError("Failed to fetch page properties from Notion. Page ID is empty.")

        try:
            page = self.client.get_page(normalized)
        except NotionError as e:
            logger.error("Failed to fetch page properties for %s: %s", page_id, e)
            if e.status is None:
                raise FetchError(
                    "Failed to fetch page properties from Notion. Could not connect to Notion."
                ) from e
            raise FetchError(
                "Failed to fetch page properties from Notion. The page may not exist "
                "or the integration may not have access."
            ) from e

        properties = page.get("properties") or {}
        return PageProperties(
            id=normalize_id(page.get("id")) or normalized,
            title=extract_title(properties),
            created_time=page.get("created_time"),
            last_edited_time=page.get("last_edited_time"),
            url=page.get("url"),
            icon=page.get("icon"),
            cover=page.get("cover"),
            parent=page.get("parent") or {},
            properties=properties,
        )

    def _fetch_children(self, block_id: str, budget: list[int]) -> list[dict]:
        """Fetch all children of a block, spending from a shared batch budget."""
        results: list[dict] = []
        cursor = None
        has_more = True

        while has_more and budget[0] > 0:
            response = self.client.get_block_children(block_id, cursor)
            budget[0] -= 1
            results.extend(response.get("results") or [])
            has_more = bool(response.get("has_more"))
            cursor = response.get("next_cursor")
            if has_more and not cursor:
                logger.warning(
                    "Notion reported more children for block %s without a cursor - some blocks may be missing",
                    block_id,
                )
                break

        if has_more and cursor and budget[0] <= 0:
            logger.warning(
                "Reached maximum batch limit (%d) for block %s - some blocks may be missing",
                self.max_batches,
                block_id,
            )
        return results

    def _build(self, raw: dict, budget: list[int]) -> SourceBlock:
        block = SourceBlock.from_api_response(raw)
        if self.fetch_nested and block.has_children and block.type in NESTED_TYPES and budget[0] > 0:
            children = [self._build(c, budget) for c in self._fetch_children(block.id, budget)]
            block = block.with_children(children)
        return block

    def fetch_page_blocks(self, page_id: str) -> list[SourceBlock]:
        """Fetch the ordered top-level blocks of a page.

        Follows ``next_cursor`` until Notion reports no more results or
        the batch cap is reached. Failures are logged and yield [].
        """
        normalized = normalize_id(page_id)
        if not normalized:
            logger.error("fetch_page_blocks called with empty page_id")
            return []

        budget = [self.max_batches]
        try:
            raw_blocks = self._fetch_children(normalized, budget)
            blocks = [self._build(raw, budget) for raw in raw_blocks]
        except NotionError as e:
            logger.error("Failed to fetch blocks for page %s: %s", page_id, e)
            return []

        logger.debug("Fetched %d blocks for page %s", len(blocks), normalized)
        return blocks

    def fetch_pages_list(self, limit: int = 100) -> list[PageSummary]:
        """Pages shared with the integration, most recently edited first."""
        limit = max(1, min(100, limit))
        try:
            response = self.client.search(object_type="page", page_size=limit)
        except NotionError as e:
            logger.error("Failed to fetch pages list: %s", e)
            return []

        pages = []
        for page in (response.get("results") or [])[:limit]:
            pages.append(
                PageSummary(
                    id=normalize_id(page.get("id")),
                    title=extract_title(page.get("properties") or {}),
                    last_edited_time=page.get("last_edited_time"),
                    url=page.get("url"),
                )
            )
        return pages
