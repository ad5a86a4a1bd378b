"""Paragraph, heading and quote converters."""

from ..base import BlockConverter, BlockType, ConversionContext, SourceBlock
from ..rich_text import render_rich_text

# Keeps empty blocks from collapsing
EMPTY_PLACEHOLDER = "&nbsp;"

HEADING_LEVELS = {
    BlockType.HEADING_1.value: 1,
    BlockType.HEADING_2.value: 2,
    BlockType.HEADING_3.value: 3,
}


class ParagraphConverter(BlockConverter):
    """Converts paragraph blocks."""

    block_types = (BlockType.PARAGRAPH.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        content = render_rich_text(block.payload.get("rich_text"), context.link_resolver)
        if not content:
            content = EMPTY_PLACEHOLDER
        return f"<!-- wp:paragraph -->\n<p>{content}</p>\n<!-- /wp:paragraph -->\n\n"


class HeadingConverter(BlockConverter):
    """Converts heading_1, heading_2 and heading_3 blocks."""

    block_types = tuple(HEADING_LEVELS)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        level = HEADING_LEVELS.get(block.type, 2)
        content = render_rich_text(block.payload.get("rich_text"), context.link_resolver)
        if not content:
            content = EMPTY_PLACEHOLDER
        return (
            f'<!-- wp:heading {{"level":{level}}} -->\n'
            f"<h{level}>{content}</h{level}>\n"
            "<!-- /wp:heading -->\n\n"
        )


class QuoteConverter(BlockConverter):
    """Converts quote blocks. Empty quotes are dropped."""

    block_types = (BlockType.QUOTE.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        content = render_rich_text(block.payload.get("rich_text"), context.link_resolver)
        if not content:
            return ""
        return (
            "<!-- wp:quote -->\n"
            f'<blockquote class="wp-block-quote"><p>{content}</p></blockquote>\n'
            "<!-- /wp:quote -->\n\n"
        )
