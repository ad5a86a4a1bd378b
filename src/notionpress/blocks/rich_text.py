"""Rich-text rendering shared by the text converters.

All source text is escaped with ``escape_html`` and all URLs pass through
``sanitize_url`` before being embedded in markup.
"""

import html
import re
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlsplit

from ..utils import extract_notion_id

if TYPE_CHECKING:
    from ..router.resolver import LinkResolver

SAFE_URL_SCHEMES = ("http", "https", "mailto", "tel")

# Browsers ignore these inside a URL, so "java\tscript:" still runs
_URL_IGNORED_CHARS = re.compile(r"[\x00-\x20\x7f]")


def escape_html(text: Optional[str]) -> str:
    """Escape text for use in element content or a quoted attribute."""
    if not text:
        return ""
    return html.escape(str(text), quote=True)


def sanitize_url(url: Optional[str]) -> str:
    """Return a URL that is safe to embed, or an empty string.

    Allows http, https, mailto and tel URLs plus relative references.
    The result is escaped for use inside a quoted attribute.

    Example:
        >>> sanitize_url("javascript:alert(1)")
        ''
        >>> sanitize_url("https://example.com/?a=1&b=2")
        'https://example.com/?a=1&amp;b=2'
    """
    if not url:
        return ""

    cleaned = _URL_IGNORED_CHARS.sub("", str(url))
    if not cleaned:
        return ""

    try:
        scheme = urlsplit(cleaned).scheme
    except ValueError:
        return ""

    if scheme:
        if scheme.lower() not in SAFE_URL_SCHEMES:
            return ""
    elif ":" in cleaned.split("/", 1)[0]:
        # Looks like a scheme urlsplit could not parse
        return ""

    return html.escape(cleaned, quote=True)


def plain_text(spans: Optional[list[dict]]) -> str:
    """Concatenate the plain text of rich-text spans (unescaped)."""
    if not spans:
        return ""
    return "".join(span.get("plain_text", "") for span in spans)


def _span_content(span: dict) -> str:
    span_type = span.get("type", "text")
    if span_type == "text":
        return (span.get("text") or {}).get("content") or span.get("plain_text", "")
    if span_type == "equation":
        return (span.get("equation") or {}).get("expression", "")
    # mention and anything newer
    return span.get("plain_text", "")


def _apply_annotations(escaped: str, annotations: dict) -> str:
    """Wrap escaped text in annotation markup, code innermost and bold outermost."""
    if annotations.get("code"):
        escaped = f"<code>{escaped}</code>"
    if annotations.get("strikethrough"):
        escaped = f"<s>{escaped}</s>"
    if annotations.get("underline"):
        escaped = f"<u>{escaped}</u>"
    if annotations.get("italic"):
        escaped = f"<em>{escaped}</em>"
    if annotations.get("bold"):
        escaped = f"<strong>{escaped}</strong>"
    return escaped


def _span_link(span: dict) -> Optional[str]:
    link = (span.get("text") or {}).get("link") or {}
    return link.get("url") or span.get("href")


def rewrite_link(url: str, resolver: Optional["LinkResolver"] = None) -> tuple[str, Optional[str]]:
    """Point internal Notion links at their target.

    Returns:
        Tuple of (url, notion_id); notion_id is None for external links
    """
    if resolver is not None:
        return resolver.rewrite_url(url)

    notion_id = extract_notion_id(url)
    if notion_id is None:
        return url, None
    return f"https://notion.so/{notion_id}", notion_id


def _apply_link(formatted: str, span: dict, resolver: Optional["LinkResolver"]) -> str:
    url = _span_link(span)
    if not url:
        return formatted

    target, notion_id = rewrite_link(url, resolver)
    href = sanitize_url(target)
    if not href:
        return formatted

    if notion_id:
        return f'<a href="{href}" data-notion-id="{escape_html(notion_id)}">{formatted}</a>'
    return f'<a href="{href}">{formatted}</a>'


def render_rich_text(
    spans: Optional[list[dict]], resolver: Optional["LinkResolver"] = None
) -> str:
    """Render rich-text spans as inline HTML.

    Args:
        spans: Notion rich-text array
        resolver: Link resolver used to rewrite internal links

    Returns:
        Escaped inline markup
    """
    if not spans:
        return ""

    parts = []
    for span in spans:
        formatted = _apply_annotations(
            escape_html(_span_content(span)), span.get("annotations") or {}
        )
        parts.append(_apply_link(formatted, span, resolver))
    return "".join(parts)
