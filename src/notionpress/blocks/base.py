"""Core block types and the converter interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..media.pipeline import MediaPipeline
    from ..router.resolver import LinkResolver
    from .registry import BlockConverterRegistry


class BlockType(str, Enum):
    """Block types with a built-in converter.

    Any other tag is carried as-is on ``SourceBlock.type`` and reported by
    ``SourceBlock.block_type`` as None (the unsupported case).
    """

    PARAGRAPH = "paragraph"
    HEADING_1 = "heading_1"
    HEADING_2 = "heading_2"
    HEADING_3 = "heading_3"
    BULLETED_LIST_ITEM = "bulleted_list_item"
    NUMBERED_LIST_ITEM = "numbered_list_item"
    QUOTE = "quote"
    IMAGE = "image"
    DIVIDER = "divider"
    CODE = "code"
    CHILD_PAGE = "child_page"
    CHILD_DATABASE = "child_database"
    LINK_TO_PAGE = "link_to_page"
    TABLE = "table"
    FILE = "file"
    PDF = "pdf"
    TOGGLE = "toggle"
    CALLOUT = "callout"
    COLUMN_LIST = "column_list"
    COLUMN = "column"


@dataclass(frozen=True)
class SourceBlock:
    """One node of Notion content, as fetched."""

    id: str
    type: str
    has_children: bool = False
    created_time: Optional[str] = None
    last_edited_time: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    children: tuple["SourceBlock", ...] = ()

    @classmethod
    def from_api_response(cls, block: dict) -> "SourceBlock":
        """Create SourceBlock from a raw block object."""
        block_type = block.get("type") or "unknown"
        children = tuple(cls.from_api_response(c) for c in block.get("children") or [])
        return cls(
            id=block.get("id", ""),
            type=block_type,
            has_children=bool(block.get("has_children")),
            created_time=block.get("created_time"),
            last_edited_time=block.get("last_edited_time"),
            payload=block.get(block_type) or {},
            children=children,
        )

    @property
    def block_type(self) -> Optional[BlockType]:
        """Known block type, or None when no built-in converter exists."""
        try:
            return BlockType(self.type)
        except ValueError:
            return None

    def with_children(self, children: list["SourceBlock"]) -> "SourceBlock":
        """Copy of this block with children attached."""
        return SourceBlock(
            id=self.id,
            type=self.type,
            has_children=self.has_children,
            created_time=self.created_time,
            last_edited_time=self.last_edited_time,
            payload=self.payload,
            children=tuple(children),
        )


@dataclass
class ConversionContext:
    """Collaborators available to converters while converting one page."""

    link_resolver: Optional["LinkResolver"] = None
    media: Optional["MediaPipeline"] = None
    source_page_id: Optional[str] = None
    document_id: Optional[int] = None
    registry: Optional["BlockConverterRegistry"] = None

    def render_children(self, blocks: tuple[SourceBlock, ...]) -> str:
        """Convert nested blocks with the active registry."""
        if not blocks or self.registry is None:
            return ""
        return self.registry.convert_blocks(list(blocks), self)


class BlockConverter(ABC):
    """Converts one kind of source block into a target block fragment."""

    #: Type tags this converter handles
    block_types: tuple[str, ...] = ()

    def supports(self, block: SourceBlock) -> bool:
        """Whether this converter handles the given block."""
        return block.type in self.block_types

    @abstractmethod
    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        """Convert a block into target markup.

        Every piece of source text must go through ``escape_html`` and every
        URL through ``sanitize_url`` before it is embedded.
        """
        ...
