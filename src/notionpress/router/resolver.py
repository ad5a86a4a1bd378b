"""Resolve source document IDs to target URLs.

Links are resolved when a page is converted. A link to a document that has
not been synced yet points at its public Notion URL and keeps a
``data-notion-id`` attribute; re-syncing the linking page picks up the real
target once it exists.
"""

import logging
from typing import Optional

from ..config import get_config
from ..db.schemas import LinkEntryResponse, LinkStatus
from ..utils import extract_notion_id, normalize_id
from .registry import LinkRegistry, notion_url

logger = logging.getLogger(__name__)

ROUTE_PREFIX = "/notion/"


class LinkResolver:
    """Turns source IDs into target URLs using the link registry."""

    def __init__(self, registry: LinkRegistry, site_url: Optional[str] = None):
        """Initialize the resolver.

        Args:
            registry: Link registry
            site_url: Base URL of the target site (uses config if not provided)
        """
        self.registry = registry
        self.site_url = (site_url or get_config().site_url).rstrip("/")

    def permalink(self, entry: LinkEntryResponse) -> str:
        """Target URL of a synced entry."""
        if entry.slug:
            return f"{self.site_url}/{entry.slug}/"
        return f"{self.site_url}/?p={entry.target_document_id}"

    def route_url(self, source_id: str) -> str:
        """Stable routing URL for a source document, synced or not."""
        slug = self.registry.get_slug_for_source_id(source_id)
        return f"{self.site_url}{ROUTE_PREFIX}{slug or normalize_id(source_id)}"

    def resolve(self, source_id: str) -> str:
        """Target URL for a source document.

        Returns:
            The permalink when synced, otherwise the Notion URL as a placeholder
        """
        entry = self.registry.find_by_source_id(source_id)
        if entry and entry.sync_status == LinkStatus.SYNCED and entry.target_document_id:
            return self.permalink(entry)
        return notion_url(source_id)

    def is_resolved(self, source_id: str) -> bool:
        """Whether the source document has a synced target."""
        entry = self.registry.find_by_source_id(source_id)
        return bool(entry and entry.sync_status == LinkStatus.SYNCED)

    def rewrite_url(self, url: str) -> tuple[str, Optional[str]]:
        """Rewrite an internal Notion link, registering its target if new.

        Returns:
            Tuple of (url, notion_id); external links come back unchanged
            with notion_id None
        """
        source_id = extract_notion_id(url)
        if source_id is None:
            return url, None
        self.registry.ensure_registered(source_id)
        return self.resolve(source_id), source_id

    def route(self, path: str) -> Optional[str]:
        """Resolve a ``/notion/<slug-or-id>`` path to a redirect target.

        Args:
            path: Full routing path or the bare slug/ID

        Returns:
            The target permalink, the Notion URL for unsynced documents, or
            None when nothing is registered under that slug or ID
        """
        key = path.strip()
        if key.startswith(ROUTE_PREFIX):
            key = key[len(ROUTE_PREFIX):]
        key = key.strip("/")
        if not key:
            return None

        entry = self.registry.find_by_slug(key) or self.registry.find_by_source_id(key)
        if entry is None:
            logger.debug("No link registered for route '%s'", key)
            return None

        self.registry.increment_access_count(entry.source_id)
        if entry.sync_status == LinkStatus.SYNCED and entry.target_document_id:
            return self.permalink(entry)
        return entry.source_url or notion_url(entry.source_id)
