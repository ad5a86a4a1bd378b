"""Child page, child database and link-to-page converters.

Each registers the referenced document in the link registry and link to
its routing URL, which keeps working before and after the target syncs.
"""

import logging

from ...db.schemas import SourceType
from ...router.registry import notion_url
from ...utils import normalize_id
from ..base import BlockConverter, BlockType, ConversionContext, SourceBlock
from ..rich_text import escape_html, sanitize_url

logger = logging.getLogger(__name__)


def _link_paragraph(url: str, source_id: str, title: str) -> str:
    href = sanitize_url(url)
    label = escape_html(title)
    if not href:
        return f"<!-- wp:paragraph -->\n<p><strong>{label}</strong></p>\n<!-- /wp:paragraph -->\n\n"
    return (
        "<!-- wp:paragraph -->\n"
        f'<p class="notion-link"><a href="{href}" data-notion-id="{escape_html(source_id)}">'
        f"{label}</a></p>\n"
        "<!-- /wp:paragraph -->\n\n"
    )


class ChildPageConverter(BlockConverter):
    """Converts child_page blocks into a link to the child."""

    block_types = (BlockType.CHILD_PAGE.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        title = block.payload.get("title") or "Untitled Page"
        source_id = normalize_id(block.id)
        if not source_id:
            return _link_paragraph("", "", title)

        resolver = context.link_resolver
        if resolver is None:
            return _link_paragraph(notion_url(source_id), source_id, title)

        resolver.registry.register(source_id, title, SourceType.PAGE)
        return _link_paragraph(resolver.route_url(source_id), source_id, title)


class LinkToPageConverter(BlockConverter):
    """Converts link_to_page blocks pointing at pages or databases."""

    block_types = (BlockType.LINK_TO_PAGE.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        source_type = SourceType.PAGE
        target = block.payload.get("page_id")
        if not target and block.payload.get("database_id"):
            target = block.payload["database_id"]
            source_type = SourceType.DATABASE

        source_id = normalize_id(target)
        if not source_id:
            return _link_paragraph("", "", "Linked Page")

        resolver = context.link_resolver
        if resolver is None:
            return _link_paragraph(notion_url(source_id), source_id, "Linked Page")

        entry = resolver.registry.ensure_registered(source_id, source_type)
        title = entry.source_title if entry.source_title != source_id else "Linked Page"
        logger.debug("Link to %s %s (%s)", source_type.value, source_id, entry.sync_status.value)
        return _link_paragraph(resolver.route_url(source_id), source_id, title)


class ChildDatabaseConverter(BlockConverter):
    """Converts child_database blocks into a link to the database."""

    block_types = (BlockType.CHILD_DATABASE.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        title = block.payload.get("title") or "Untitled Database"
        source_id = normalize_id(block.id)
        if not source_id:
            return _link_paragraph("", "", title)

        resolver = context.link_resolver
        if resolver is None:
            return _link_paragraph(notion_url(source_id), source_id, title)

        entry = resolver.registry.ensure_registered(source_id, SourceType.DATABASE)
        if entry.source_title == source_id:
            resolver.registry.register(source_id, title, SourceType.DATABASE)
        return _link_paragraph(resolver.route_url(source_id), source_id, title)
