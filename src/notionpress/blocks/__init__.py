"""Notion block to WordPress block conversion."""

from .base import BlockConverter, BlockType, ConversionContext, SourceBlock
from .registry import BlockConverterRegistry, create_default_registry
from .rich_text import escape_html, plain_text, render_rich_text, sanitize_url

__all__ = [
    "BlockConverter",
    "BlockConverterRegistry",
    "BlockType",
    "ConversionContext",
    "SourceBlock",
    "create_default_registry",
    "escape_html",
    "plain_text",
    "render_rich_text",
    "sanitize_url",
]
