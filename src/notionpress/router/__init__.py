"""Link registry and routing."""

from .registry import LinkRegistry
from .resolver import LinkResolver

__all__ = ["LinkRegistry", "LinkResolver"]
