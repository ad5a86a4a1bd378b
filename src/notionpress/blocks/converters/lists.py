"""Bulleted and numbered list converters.

Notion stores each list item as its own sibling block, so every item
becomes its own single-item list. Nested children are rendered as nested
lists inside the item.
"""

from ..base import BlockConverter, BlockType, ConversionContext, SourceBlock
from ..rich_text import render_rich_text
from .text import EMPTY_PLACEHOLDER

LIST_TAGS = {
    BlockType.BULLETED_LIST_ITEM.value: "ul",
    BlockType.NUMBERED_LIST_ITEM.value: "ol",
}


class ListItemConverter(BlockConverter):
    """Shared rendering for list items."""

    ordered = False

    def _item_html(self, block: SourceBlock, context: ConversionContext) -> str:
        content = render_rich_text(block.payload.get("rich_text"), context.link_resolver)
        if not content:
            content = EMPTY_PLACEHOLDER
        return f"<li>{content}{self._children_html(block, context)}</li>"

    def _children_html(self, block: SourceBlock, context: ConversionContext) -> str:
        html = []
        for child in block.children:
            tag = LIST_TAGS.get(child.type)
            if tag:
                html.append(f"<{tag}>{self._item_html(child, context)}</{tag}>")
            else:
                html.append(context.render_children((child,)))
        return "".join(html)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        tag = "ol" if self.ordered else "ul"
        attrs = ' {"ordered":true}' if self.ordered else ""
        return (
            f"<!-- wp:list{attrs} -->\n"
            f"<{tag}>{self._item_html(block, context)}</{tag}>\n"
            "<!-- /wp:list -->\n\n"
        )


class BulletedListConverter(ListItemConverter):
    """Converts bulleted_list_item blocks."""

    block_types = (BlockType.BULLETED_LIST_ITEM.value,)


class NumberedListConverter(ListItemConverter):
    """Converts numbered_list_item blocks."""

    block_types = (BlockType.NUMBERED_LIST_ITEM.value,)
    ordered = True
