"""
Enrichment data model.

Detections wrapped with collection-match and external-metadata fields, and
the aggregate returned by a shelf analysis.
"""

from dataclasses import dataclass, field
from typing import Optional

from shelfscan.providers.types import DetectedBook, ShelfAnalysisResult


@dataclass
class ExternalMetadata:
    """Fields merged from the bibliographic service."""
    cover_url: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    category: Optional[str] = None
    isbn: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "cover_url": self.cover_url,
            "publisher": self.publisher,
            "year": self.year,
            "category": self.category,
            "isbn": self.isbn,
        }


@dataclass
class EnrichedDetectedBook:
    """
    A detection plus collection and enrichment state.

    Owned by a single analysis call. The matcher sets the collection fields,
    the enricher sets external_metadata, and selection reads both.
    """

    book: DetectedBook

    # Collection match
    in_collection: bool = False
    existing_book_id: Optional[str] = None
    match_confidence: Optional[float] = None

    # Detection confidence gate
    meets_detection_threshold: bool = False

    # Enrichment
    external_metadata: Optional[ExternalMetadata] = None

    @property
    def title(self) -> str:
        return self.book.title

    @property
    def author(self) -> Optional[str]:
        return self.book.author

    @property
    def isbn(self) -> Optional[str]:
        return self.book.isbn

    @property
    def is_unreadable(self) -> bool:
        return self.book.is_unreadable

    @property
    def effective_isbn(self) -> Optional[str]:
        """Detected ISBN, else the one returned by the lookup."""
        if self.book.isbn:
            return self.book.isbn
        if self.external_metadata:
            return self.external_metadata.isbn
        return None

    def to_dict(self) -> dict:
        data = self.book.to_dict()
        data.update({
            "in_collection": self.in_collection,
            "existing_book_id": self.existing_book_id,
            "match_confidence": self.match_confidence,
            "meets_detection_threshold": self.meets_detection_threshold,
            "external_metadata": self.external_metadata.to_dict() if self.external_metadata else None,
        })
        return data


@dataclass
class CollectionStats:
    total_detected: int
    in_collection: int
    not_in_collection: int

    def to_dict(self) -> dict:
        return {
            "total_detected": self.total_detected,
            "in_collection": self.in_collection,
            "not_in_collection": self.not_in_collection,
        }


@dataclass
class ShelfAnalysisWithCollection:
    """
    Result of a full shelf analysis.

    Stats are derived from enriched_books on every access, so they follow
    later changes such as mark_added().
    """

    analysis: ShelfAnalysisResult
    enriched_books: list[EnrichedDetectedBook] = field(default_factory=list)
    degraded_phases: list[str] = field(default_factory=list)

    @property
    def stats(self) -> CollectionStats:
        in_collection = sum(1 for book in self.enriched_books if book.in_collection)
        return CollectionStats(
            total_detected=len(self.enriched_books),
            in_collection=in_collection,
            not_in_collection=len(self.enriched_books) - in_collection,
        )

    def mark_added(self, index: int, book_id: str) -> EnrichedDetectedBook:
        """
        Flag a detection as now stored in the collection.

        Raises:
            IndexError: If index is out of range
        """
        if index < 0 or index >= len(self.enriched_books):
            raise IndexError(f"No detected book at index {index}")

        book = self.enriched_books[index]
        book.in_collection = True
        book.existing_book_id = book_id
        return book

    def to_dict(self) -> dict:
        return {
            "analysis": self.analysis.to_dict(),
            "enriched_books": [book.to_dict() for book in self.enriched_books],
            "stats": self.stats.to_dict(),
            "degraded_phases": list(self.degraded_phases),
        }
