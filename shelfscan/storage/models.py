"""
Storage records exchanged with the book store.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ExistingBook:
    """A book already in the user's collection."""
    id: str
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None


@dataclass
class NewBookRecord:
    """Candidate book to create from a shelf scan."""
    title: str
    author: str = "Unknown"
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    category: Optional[str] = None
    language: Optional[str] = None
    source_tags: list[str] = field(default_factory=list)
    metadata_source: str = "ai_shelf_scan"
