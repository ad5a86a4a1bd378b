"""Image converter.

Notion-hosted images are copied through the media pipeline. When the copy
is queued, the fragment points at a pending placeholder that is swapped
for the stored URL at render time. Any media failure falls back to a
direct link; an image never fails the page.
"""

import logging

from ...errors import MediaError
from ...media.pipeline import placeholder
from ..base import BlockConverter, BlockType, ConversionContext, SourceBlock
from ..rich_text import escape_html, plain_text, sanitize_url

logger = logging.getLogger(__name__)


def _caption_html(caption: str) -> str:
    if not caption:
        return ""
    return f'<figcaption class="wp-element-caption">{escape_html(caption)}</figcaption>'


def _image_block(src: str, alt: str, caption: str, css_class: str) -> str:
    return (
        "<!-- wp:image -->\n"
        f'<figure class="wp-block-image"><img src="{src}" alt="{escape_html(alt)}" '
        f'class="{css_class}"/>{_caption_html(caption)}</figure>\n'
        "<!-- /wp:image -->\n\n"
    )


def _failure_comment(message: str) -> str:
    return f"<!-- Image conversion failed: {escape_html(message)} -->\n\n"


class ImageConverter(BlockConverter):
    """Converts image blocks."""

    block_types = (BlockType.IMAGE.value,)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        image = block.payload
        if not image:
            return _failure_comment("Image data not found")

        image_type = image.get("type", "")
        if image_type not in ("external", "file"):
            return _failure_comment(f"Unknown image type: {image_type}")

        url = (image.get(image_type) or {}).get("url", "")
        if not url:
            return _failure_comment("Image URL not found")

        caption = plain_text(image.get("caption")).strip()
        media = context.media

        if media is None or not media.should_download(url):
            return self._direct_link(url, caption or "External image", caption)

        try:
            local_url = media.process(block.id, url, context.source_page_id)
        except MediaError as e:
            logger.warning("Image download failed for block %s, linking directly: %s", block.id, e)
            return self._direct_link(url, caption or "Image from Notion", caption)

        alt = caption or "Image from Notion"
        if local_url is None:
            return (
                f'<!-- wp:image {{"notionBlockId":"{escape_html(block.id)}"}} -->\n'
                f'<figure class="wp-block-image"><img src="{placeholder(block.id)}" '
                f'alt="{escape_html(alt)}" class="notion-image-pending"/>'
                f"{_caption_html(caption)}</figure>\n"
                "<!-- /wp:image -->\n\n"
            )

        return _image_block(sanitize_url(local_url), alt, caption, "notion-image")

    def _direct_link(self, url: str, alt: str, caption: str) -> str:
        src = sanitize_url(url)
        if not src:
            return _failure_comment("Unsafe image URL")
        return _image_block(src, alt, caption, "external-image")
