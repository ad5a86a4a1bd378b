"""Target document store."""

from .documents import DocumentStore, DuplicateSourceError

__all__ = ["DocumentStore", "DuplicateSourceError"]
