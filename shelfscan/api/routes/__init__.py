"""API route modules."""

from . import analysis, shelves

__all__ = ["analysis", "shelves"]
