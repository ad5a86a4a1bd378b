"""Notion API client wrapper.

Thin authenticated layer over ``notion_client``: page retrieval, block
children, database queries and search. Returns raw Notion JSON and
translates SDK failures into ``NotionError`` subclasses.
"""

import logging
import time
from typing import Any, Callable, Optional

import httpx
from notion_client import Client
from notion_client.errors import APIResponseError, HTTPResponseError, RequestTimeoutError

from ..config import get_config

logger = logging.getLogger(__name__)


class NotionError(Exception):
    """Base exception for Notion API errors."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class NotionConfigError(NotionError):
    """Raised when Notion is not properly configured."""

    pass


class NotionNotFoundError(NotionError):
    """Raised when a page, block or database does not exist or is not shared."""

    pass


class NotionRateLimitError(NotionError):
    """Raised when rate limited by Notion API."""

    def __init__(self, retry_after: int = 1):
        self.retry_after = retry_after
        super().__init__(f"Rate limited. Retry after {retry_after}s", status=429)


# Friendly messages by HTTP status
API_ERROR_MESSAGES = {
    400: "Bad request: {detail}",
    401: "Authentication failed. Check that your API token is correct and has not been revoked.",
    403: "Access forbidden. Make sure the Notion page is shared with this integration.",
    404: "Resource not found: {detail}",
    409: "Conflict: {detail}",
    500: "Notion API internal error. Try again later.",
    502: "Notion API is temporarily unavailable. Try again later.",
    503: "Notion API is temporarily unavailable. Try again later.",
}


class NotionClient:
    """Client for the Notion API."""

    PAGE_SIZE = 100  # Notion maximum

    def __init__(
        self,
        api_key: Optional[str] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: Optional[int] = None,
    ):
        """Initialize Notion client.

        Args:
            api_key: Integration token (overrides config)
            token_provider: Callable returning the token from a secret store
            timeout: Request timeout in seconds (uses config if not provided)
        """
        config = get_config()

        token = api_key
        if not token and token_provider is not None:
            token = token_provider()
        if not token:
            token = config.notion_api_key

        if not token:
            raise NotionConfigError("NOTION_API_KEY not set")

        self.timeout = timeout or config.request_timeout
        self._client = Client(auth=token, timeout_ms=int(self.timeout * 1000))
        self._last_request_time = 0.0
        self._min_request_interval = 0.35  # ~3 requests per second (Notion limit)

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_request_interval:
            time.sleep(self._min_request_interval - elapsed)
        self._last_request_time = time.time()

    def _handle_api_error(self, e: APIResponseError) -> None:
        """Translate a Notion API error into a NotionError."""
        if e.status == 429:
            retry_after = int(e.headers.get("Retry-After", 1)) if e.headers else 1
            raise NotionRateLimitError(retry_after)

        # Message is stored in args[0], not as .message attribute
        detail = str(e.args[0]) if e.args else "Unknown error"
        template = API_ERROR_MESSAGES.get(e.status, "Notion API error: {detail}")
        message = template.format(detail=detail)

        if e.status == 404:
            raise NotionNotFoundError(message, status=404)
        raise NotionError(message, status=e.status)

    def _call(self, operation: Callable[..., Any], **kwargs: Any) -> dict:
        """Run one SDK call with rate limiting and error translation."""
        self._rate_limit()
        try:
            return operation(**kwargs)
        except APIResponseError as e:
            self._handle_api_error(e)
            raise
        except RequestTimeoutError:
            raise NotionError(f"Request to Notion timed out after {self.timeout}s")
        except HTTPResponseError as e:
            raise NotionError(f"HTTP error: {e.status}", status=e.status)
        except httpx.HTTPError as e:
            # The SDK passes connection and protocol failures through untouched
            raise NotionError(f"Could not reach Notion: {e.__class__.__name__}") from e

    # ========================================================================
    # Pages and blocks
    # ========================================================================

    def get_page(self, page_id: str) -> dict:
        """Retrieve a page object.

        Args:
            page_id: Notion page ID (with or without dashes)

        Returns:
            Raw page JSON
        """
        return self._call(self._client.pages.retrieve, page_id=page_id)

    def get_block_children(self, block_id: str, cursor: Optional[str] = None) -> dict:
        """Retrieve one page of a block's children.

        Returns:
            ``{"results": [...], "has_more": bool, "next_cursor": str | None}``
        """
        kwargs: dict[str, Any] = {"block_id": block_id, "page_size": self.PAGE_SIZE}
        if cursor:
            kwargs["start_cursor"] = cursor
        return self._call(self._client.blocks.children.list, **kwargs)

    # ========================================================================
    # Databases
    # ========================================================================

    def query_database(
        self,
        database_id: str,
        cursor: Optional[str] = None,
        filter: Optional[dict] = None,
        sorts: Optional[list] = None,
    ) -> dict:
        """Retrieve one page of database rows.

        Returns:
            Same paginated shape as ``get_block_children``
        """
        body: dict[str, Any] = {"page_size": self.PAGE_SIZE}
        if cursor:
            body["start_cursor"] = cursor
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts
        # Raw request keeps the database (not data source) endpoint stable across SDK versions
        return self._call(
            self._client.request,
            path=f"databases/{database_id}/query",
            method="POST",
            body=body,
        )

    def retrieve_database(self, database_id: str) -> dict:
        """Retrieve a database object with its property schema."""
        return self._call(
            self._client.request,
            path=f"databases/{database_id}",
            method="GET",
        )

    # ========================================================================
    # Search
    # ========================================================================

    def search(
        self,
        object_type: str = "page",
        page_size: int = PAGE_SIZE,
        cursor: Optional[str] = None,
        query: Optional[str] = None,
    ) -> dict:
        """Search pages or databases shared with the integration.

        Results are sorted by last edited time, newest first.
        """
        body: dict[str, Any] = {
            "page_size": max(1, min(self.PAGE_SIZE, page_size)),
            "filter": {"property": "object", "value": object_type},
            "sort": {"direction": "descending", "timestamp": "last_edited_time"},
        }
        if cursor:
            body["start_cursor"] = cursor
        if query:
            body["query"] = query
        return self._call(self._client.search, **body)
