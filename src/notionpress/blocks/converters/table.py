"""Table converter.

Rows arrive as ``table_row`` children fetched with the table; each row
holds one rich-text array per cell.
"""

from ..base import BlockConverter, BlockType, ConversionContext, SourceBlock
from ..rich_text import render_rich_text

TABLE_ROW = "table_row"

EMPTY_TABLE = "<!-- wp:paragraph -->\n<p><em>[Table with no content]</em></p>\n<!-- /wp:paragraph -->\n\n"


class TableConverter(BlockConverter):
    """Converts table blocks with their rows."""

    block_types = (BlockType.TABLE.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        rows = [
            child.payload.get("cells") or []
            for child in block.children
            if child.type == TABLE_ROW
        ]
        rows = [cells for cells in rows if cells]
        if not rows:
            return EMPTY_TABLE

        column_header = bool(block.payload.get("has_column_header"))
        row_header = bool(block.payload.get("has_row_header"))

        head = ""
        if column_header:
            head = f"<thead>{self._row(rows[0], context, 'th', row_header)}</thead>"
            rows = rows[1:]

        body = "".join(self._row(cells, context, "td", row_header) for cells in rows)
        if body:
            body = f"<tbody>{body}</tbody>"

        return (
            "<!-- wp:table -->\n"
            f'<figure class="wp-block-table"><table>{head}{body}</table></figure>\n'
            "<!-- /wp:table -->\n\n"
        )

    @staticmethod
    def _row(cells: list, context: ConversionContext, tag: str, row_header: bool) -> str:
        html = []
        for index, cell in enumerate(cells):
            cell_tag = "th" if row_header and index == 0 else tag
            content = render_rich_text(cell, context.link_resolver)
            html.append(f"<{cell_tag}>{content}</{cell_tag}>")
        return f"<tr>{''.join(html)}</tr>"
