"""Container converters: toggles, callouts and column layouts.

Each wraps its rich text and renders nested children through the active
registry, so any supported block can appear inside.
"""

from ..base import BlockConverter, BlockType, ConversionContext, SourceBlock
from ..rich_text import escape_html, render_rich_text, sanitize_url

NOTION_COLORS = (
    "gray",
    "brown",
    "orange",
    "yellow",
    "green",
    "blue",
    "purple",
    "pink",
    "red",
)


def color_class(color: str) -> str:
    """Map a Notion color ("blue_background", "red") to a class suffix."""
    base = (color or "default").replace("_background", "")
    return base if base in NOTION_COLORS else "default"


class ToggleConverter(BlockConverter):
    """Converts toggle blocks into a details element."""

    block_types = (BlockType.TOGGLE.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        title = render_rich_text(block.payload.get("rich_text"), context.link_resolver)
        if not title:
            return ""

        color = color_class(block.payload.get("color", "default"))
        children = context.render_children(block.children)
        return (
            "<!-- wp:details -->\n"
            f'<details class="wp-block-details notion-toggle notion-toggle-{color}">'
            f"<summary>{title}</summary>{children}</details>\n"
            "<!-- /wp:details -->\n\n"
        )


class CalloutConverter(BlockConverter):
    """Converts callout blocks into a styled group."""

    block_types = (BlockType.CALLOUT.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        text = render_rich_text(block.payload.get("rich_text"), context.link_resolver)
        color = color_class(block.payload.get("color", "default"))
        class_name = f"notion-callout notion-callout-{color}"
        icon = self._icon_html(block.payload.get("icon") or {})
        children = context.render_children(block.children)

        return (
            f'<!-- wp:group {{"className":"{class_name}"}} -->\n'
            f'<div class="wp-block-group {class_name}">{icon}'
            f'<p class="notion-callout-text">{text}</p>{children}</div>\n'
            "<!-- /wp:group -->\n\n"
        )

    @staticmethod
    def _icon_html(icon: dict) -> str:
        icon_type = icon.get("type")
        if icon_type == "emoji" and icon.get("emoji"):
            return f'<span class="notion-callout-icon">{escape_html(icon["emoji"])}</span>'
        if icon_type in ("external", "file"):
            src = sanitize_url((icon.get(icon_type) or {}).get("url"))
            if src:
                return f'<img class="notion-callout-icon" src="{src}" alt=""/>'
        return ""


class ColumnListConverter(BlockConverter):
    """Converts column_list blocks; each child is a column."""

    block_types = (BlockType.COLUMN_LIST.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        columns = context.render_children(block.children)
        if not columns:
            return ""
        return (
            "<!-- wp:columns -->\n"
            f'<div class="wp-block-columns">{columns}</div>\n'
            "<!-- /wp:columns -->\n\n"
        )


class ColumnConverter(BlockConverter):
    """Converts a single column inside a column_list."""

    block_types = (BlockType.COLUMN.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        return (
            "<!-- wp:column -->\n"
            f'<div class="wp-block-column">{context.render_children(block.children)}</div>\n'
            "<!-- /wp:column -->\n\n"
        )
