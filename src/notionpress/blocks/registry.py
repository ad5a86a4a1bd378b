"""Block converter registry.

Dispatches each source block to the first registered converter that
supports it. Blocks nobody supports become an HTML comment naming the
block type and ID so they can be reprocessed once support is added.
"""

import logging
from collections import Counter
from typing import Callable, Optional

from ..errors import ConversionError
from .base import BlockConverter, ConversionContext, SourceBlock
from .rich_text import escape_html

logger = logging.getLogger(__name__)

#: Receives the default converter list at construction and returns the list to use
ExtensionHook = Callable[[list[BlockConverter]], list[BlockConverter]]


class BlockConverterRegistry:
    """Type-tag to converter dispatch table."""

    def __init__(
        self,
        converters: Optional[list[BlockConverter]] = None,
        extension_hook: Optional[ExtensionHook] = None,
    ):
        """Initialize the registry.

        Args:
            converters: Initial converters, in priority order
            extension_hook: Called once with the converter list; may add,
                remove or reorder converters
        """
        self._converters: list[tuple[str, BlockConverter]] = []

        initial = list(converters or [])
        if extension_hook is not None:
            initial = list(extension_hook(initial))

        for converter in initial:
            if not isinstance(converter, BlockConverter):
                logger.warning("Ignoring non-converter %r from extension hook", converter)
                continue
            for type_tag in converter.block_types or ("*",):
                self.register(type_tag, converter)

    def register(self, type_tag: str, converter: BlockConverter) -> None:
        """Associate a type tag with a converter.

        Converters registered earlier take precedence.
        """
        self._converters.append((type_tag, converter))

    @property
    def registered_types(self) -> list[str]:
        """Type tags with a registered converter."""
        return sorted({tag for tag, _ in self._converters if tag != "*"})

    def find_converter(self, block: SourceBlock) -> Optional[BlockConverter]:
        """First converter registered for the block's type that supports it.

        Converters registered under "*" are tried for every type.
        """
        for type_tag, converter in self._converters:
            if type_tag in (block.type, "*") and converter.supports(block):
                return converter
        return None

    def convert_blocks(
        self,
        blocks: list[SourceBlock],
        context: Optional[ConversionContext] = None,
    ) -> str:
        """Convert blocks into one document, preserving block order.

        Args:
            blocks: Source blocks in document order
            context: Collaborators for link and media handling

        Returns:
            Concatenated target markup

        Raises:
            ConversionError: If a converter raises
        """
        if context is None:
            context = ConversionContext()
        if context.registry is None:
            context.registry = self

        fragments = []
        type_counts: Counter = Counter()

        for block in blocks:
            converter = self.find_converter(block)
            if converter is None:
                fragments.append(self._unsupported_placeholder(block))
                continue

            try:
                fragments.append(converter.convert(block, context))
            except ConversionError:
                raise
            except Exception as e:
                raise ConversionError(
                    f"Converter for '{block.type}' failed on block {block.id}: {e}"
                ) from e
            type_counts[block.type] += 1

        if type_counts:
            logger.debug("Block type distribution: %s", dict(type_counts))

        return "".join(fragments)

    def _unsupported_placeholder(self, block: SourceBlock) -> str:
        block_type = block.type or "unknown"
        block_id = block.id or "no-id"
        logger.warning("Unsupported block type: %s (ID: %s)", block_type, block_id)
        return (
            f"<!-- Unsupported Notion block: {escape_html(block_type)} "
            f"(ID: {escape_html(block_id)}) -->\n\n"
        )


def create_default_registry(
    extension_hook: Optional[ExtensionHook] = None,
) -> BlockConverterRegistry:
    """Registry with the built-in converters."""
    from .converters import default_converters

    return BlockConverterRegistry(default_converters(), extension_hook=extension_hook)
