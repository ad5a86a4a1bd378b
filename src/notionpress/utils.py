"""Shared helpers for source IDs, slugs and timestamps.

Every lookup keyed by a Notion ID (sync records, link registry, media
registry) goes through ``normalize_id`` so the stored forms always match.
"""

import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional

from .errors import ValidationError

MAX_PAGE_ID_LENGTH = 50

_PAGE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9\-]+$")
_SEPARATORS = re.compile(r"[^0-9a-zA-Z]")

# /<32 hex> (relative link inside a Notion workspace)
_RELATIVE_LINK = re.compile(r"^/([a-f0-9]{32})(?:[/?#].*)?$", re.IGNORECASE)
# notion.so/<slug>-<32 hex> or notion.so/<uuid>
_NOTION_URL = re.compile(
    r"notion\.(?:so|site)/(?:[^?#]*?[-/])?([a-f0-9]{32}|[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})(?:[/?#].*)?$",
    re.IGNORECASE,
)

_EMOJI_RANGES = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols and pictographs
    "\U0001F680-\U0001F6FF"  # transport and map
    "\U0001F1E0-\U0001F1FF"  # flags
    "\U00002600-\U000026FF"  # misc symbols
    "\U00002700-\U000027BF"  # dingbats
    "\U0001F900-\U0001F9FF"  # supplemental symbols
    "\U0001F018-\U0001F270"
    "\U0000238C-\U00002454"
    "\U000020D0-\U000020FF"
    "]+"
)


def normalize_id(source_id: Optional[str]) -> str:
    """Strip separators from a Notion ID and lowercase it.

    Example:
        >>> normalize_id("1A2b3c4d-0000-0000-0000-000000000000")
        '1a2b3c4d000000000000000000000000'
    """
    if not source_id:
        return ""
    return _SEPARATORS.sub("", source_id).lower()


def format_as_uuid(source_id: str) -> str:
    """Format a 32 character Notion ID in dashed UUID form.

    IDs of any other length are returned unchanged.
    """
    normalized = normalize_id(source_id)
    if len(normalized) != 32:
        return source_id
    return (
        f"{normalized[0:8]}-{normalized[8:12]}-{normalized[12:16]}-"
        f"{normalized[16:20]}-{normalized[20:32]}"
    )


def validate_page_id(page_id: Optional[str]) -> str:
    """Validate a page ID before any I/O.

    Returns:
        The normalized ID

    Raises:
        ValidationError: If the ID is empty, too long or has bad characters
    """
    if not page_id:
        raise ValidationError("Notion page ID cannot be empty.")

    if len(page_id) > MAX_PAGE_ID_LENGTH:
        raise ValidationError(
            f"Notion page ID exceeds maximum length of {MAX_PAGE_ID_LENGTH} characters."
        )

    if not _PAGE_ID_PATTERN.match(page_id):
        raise ValidationError(
            "Notion page ID contains invalid characters. "
            "Only alphanumeric characters and hyphens are allowed."
        )

    return normalize_id(page_id)


def extract_notion_id(url: str) -> Optional[str]:
    """Extract a normalized Notion page ID from an internal link.

    Returns:
        The normalized ID, or None for links that do not point into Notion
    """
    if not url:
        return None

    match = _RELATIVE_LINK.match(url)
    if match:
        return normalize_id(match.group(1))

    match = _NOTION_URL.search(url)
    if match:
        return normalize_id(match.group(1))

    return None


def remove_emoji(text: str) -> str:
    """Remove emoji and collapse whitespace."""
    text = _EMOJI_RANGES.sub("", text)
    return " ".join(text.split())


def slugify_title(value: str) -> str:
    """Build a URL slug from a title."""
    if not value:
        return ""
    normalized = unicodedata.normalize("NFKD", remove_emoji(value))
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text)
    return re.sub(r"-+", "-", slug).strip("-")


def utcnow_iso() -> str:
    """Current UTC time as an ISO string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(ts: Optional[str]) -> Optional[datetime]:
    """Parse ISO timestamp string to datetime."""
    if not ts:
        return None
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None
