"""Built-in block converters."""

from ..base import BlockConverter
from .containers import CalloutConverter, ColumnConverter, ColumnListConverter, ToggleConverter
from .file import FileConverter
from .image import ImageConverter
from .links import ChildDatabaseConverter, ChildPageConverter, LinkToPageConverter
from .lists import BulletedListConverter, NumberedListConverter
from .misc import CodeConverter, DividerConverter
from .table import TableConverter
from .text import HeadingConverter, ParagraphConverter, QuoteConverter


def default_converters() -> list[BlockConverter]:
    """Fresh instances of the built-in converters, in dispatch order."""
    return [
        ParagraphConverter(),
        HeadingConverter(),
        BulletedListConverter(),
        NumberedListConverter(),
        QuoteConverter(),
        DividerConverter(),
        CodeConverter(),
        TableConverter(),
        ChildPageConverter(),
        ChildDatabaseConverter(),
        LinkToPageConverter(),
        ImageConverter(),
        FileConverter(),
        ToggleConverter(),
        CalloutConverter(),
        ColumnListConverter(),
        ColumnConverter(),
    ]


__all__ = [
    "BulletedListConverter",
    "CalloutConverter",
    "ChildDatabaseConverter",
    "ChildPageConverter",
    "CodeConverter",
    "ColumnConverter",
    "ColumnListConverter",
    "DividerConverter",
    "FileConverter",
    "HeadingConverter",
    "ImageConverter",
    "LinkToPageConverter",
    "NumberedListConverter",
    "ParagraphConverter",
    "QuoteConverter",
    "TableConverter",
    "ToggleConverter",
    "default_converters",
]
