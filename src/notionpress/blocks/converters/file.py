"""File and PDF converters.

Notion-hosted attachments go through the media pipeline like images, with
the same placeholder for queued downloads and the same direct-link
fallback when a download fails. PDFs are embedded as well as linked.
"""

import logging
from pathlib import PurePosixPath
from urllib.parse import unquote, urlsplit

from ...errors import MediaError
from ...media.pipeline import FILE, placeholder
from ..base import BlockConverter, BlockType, ConversionContext, SourceBlock
from ..rich_text import escape_html, plain_text, sanitize_url

logger = logging.getLogger(__name__)


def _failure_comment(message: str) -> str:
    return f"<!-- File conversion failed: {escape_html(message)} -->\n\n"


def _file_name(data: dict, url: str) -> str:
    name = (data.get("name") or "").strip()
    if name:
        return name
    return unquote(PurePosixPath(urlsplit(url).path).name) or "Download"


class FileConverter(BlockConverter):
    """Converts file and pdf blocks."""

    block_types = (BlockType.FILE.value, BlockType.PDF.value)

    def convert(self, block: SourceBlock, context: ConversionContext) -> str:
        data = block.payload
        if not data:
            return _failure_comment("File data not found")

        file_type = data.get("type", "")
        if file_type not in ("external", "file"):
            return _failure_comment(f"Unknown file type: {file_type}")

        url = (data.get(file_type) or {}).get("url", "")
        if not url:
            return _failure_comment("File URL not found")

        name = _file_name(data, url)
        caption = plain_text(data.get("caption")).strip()
        is_pdf = block.type == BlockType.PDF.value or name.lower().endswith(".pdf")
        media = context.media

        href = url
        if media is not None and media.should_download(url):
            try:
                local_url = media.process(block.id, url, context.source_page_id, kind=FILE)
            except MediaError as e:
                logger.warning("File download failed for block %s, linking directly: %s", block.id, e)
            else:
                if local_url is None:
                    return self._file_block(placeholder(block.id), name, caption, is_pdf)
                href = local_url

        safe_href = sanitize_url(href)
        if not safe_href:
            return _failure_comment("Unsafe file URL")
        return self._file_block(safe_href, name, caption, is_pdf)

    @staticmethod
    def _file_block(href: str, name: str, caption: str, is_pdf: bool) -> str:
        label = escape_html(name)
        embed = ""
        if is_pdf:
            embed = (
                f'<object class="wp-block-file__embed" data="{href}" type="application/pdf" '
                f'style="width:100%;height:600px" aria-label="{label}"></object>'
            )
        caption_html = ""
        if caption:
            caption_html = f'<figcaption class="wp-element-caption">{escape_html(caption)}</figcaption>'
        return (
            "<!-- wp:file -->\n"
            f'<div class="wp-block-file">{embed}<a href="{href}">{label}</a>'
            f'<a href="{href}" class="wp-block-file__button" download>Download</a>'
            f"{caption_html}</div>\n"
            "<!-- /wp:file -->\n\n"
        )
