"""Source API clients."""

from .notion import (
    NotionClient,
    NotionConfigError,
    NotionError,
    NotionNotFoundError,
    NotionRateLimitError,
)

__all__ = [
    "NotionClient",
    "NotionConfigError",
    "NotionError",
    "NotionNotFoundError",
    "NotionRateLimitError",
]
