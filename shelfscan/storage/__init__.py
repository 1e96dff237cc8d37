"""
Storage Module for ShelfScan

Book store interface used by collection matching and scan import.
"""

from shelfscan.storage.models import ExistingBook, NewBookRecord
from shelfscan.storage.book_repository import (
    BookRepository,
    InMemoryBookRepository,
    ShelfNotFoundError,
)

__all__ = [
    "ExistingBook",
    "NewBookRecord",
    "BookRepository",
    "InMemoryBookRepository",
    "ShelfNotFoundError",
]
