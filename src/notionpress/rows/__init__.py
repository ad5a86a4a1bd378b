"""Database row storage."""

from .repository import RowRepository

__all__ = ["RowRepository"]
