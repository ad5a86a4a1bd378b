"""Exception taxonomy for the sync pipeline.

Each error names the pipeline stage it belongs to so callers can map
failures to guidance without parsing exception text.
"""


class NotionPressError(Exception):
    """Base exception for notionpress errors."""

    stage = "unexpected"


class ValidationError(NotionPressError):
    """Raised when input is malformed, before any I/O happens."""

    stage = "validation"


class FetchError(NotionPressError):
    """Raised when the source API is unreachable or a resource is missing."""

    stage = "fetch"


class ConversionError(NotionPressError):
    """Raised when a block converter fails unrecoverably."""

    stage = "convert"


class WriteError(NotionPressError):
    """Raised when the target store rejects a create or update."""

    stage = "write"


class MediaError(NotionPressError):
    """Raised when a media download fails.

    Never fatal to a page sync: the image or file falls back to a direct link.
    """

    stage = "media"
