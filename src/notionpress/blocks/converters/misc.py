"""Divider and code converters."""

import json
import re

from ..base import BlockConverter, BlockType, ConversionContext, SourceBlock
from ..rich_text import escape_html, plain_text

# Notion language names that differ from the target highlighter's names
LANGUAGE_MAP = {
    "c++": "cpp",
    "c#": "csharp",
    "f#": "fsharp",
    "html": "markup",
    "xml": "markup",
    "objective-c": "objectivec",
    "plain text": "plaintext",
    "vb.net": "vbnet",
    "visual basic": "vbnet",
    "webassembly": "wasm",
    "java/c/c++/c#": "clike",
}

_LANGUAGE_NAME = re.compile(r"^[a-z0-9]+$")


def map_language(language: str) -> str:
    """Map a Notion code language to a highlighter language name."""
    language = (language or "").strip().lower()
    if language in LANGUAGE_MAP:
        return LANGUAGE_MAP[language]
    if _LANGUAGE_NAME.match(language):
        return language
    return "plaintext"


class DividerConverter(BlockConverter):
    """Converts divider blocks."""

    block_types = (BlockType.DIVIDER.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        return (
            "<!-- wp:separator -->\n"
            '<hr class="wp-block-separator has-alpha-channel-opacity"/>\n'
            "<!-- /wp:separator -->\n\n"
        )


class CodeConverter(BlockConverter):
    """Converts code blocks, with an optional caption paragraph."""

    block_types = (BlockType.CODE.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        code = plain_text(block.payload.get("rich_text"))
        if not code:
            return ""

        language = map_language(block.payload.get("language", "plain text"))
        attrs = ""
        if language != "plaintext":
            attrs = json.dumps({"language": language}, separators=(",", ":")) + " "

        output = (
            f"<!-- wp:code {attrs}-->\n"
            f'<pre class="wp-block-code"><code>{escape_html(code)}</code></pre>\n'
            "<!-- /wp:code -->\n\n"
        )

        caption = plain_text(block.payload.get("caption")).strip()
        if caption:
            output += (
                "<!-- wp:paragraph -->\n"
                f'<p class="code-caption"><em>{escape_html(caption)}</em></p>\n'
                "<!-- /wp:paragraph -->\n\n"
            )
        return output
