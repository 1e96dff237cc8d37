"""
Collection Matcher

Resolves detected books against the caller's existing records:
- ISBN exact match (formatting-insensitive)
- Normalized title similarity (Levenshtein ratio)
- Author confirmation when both sides carry an author
"""

import re
import unicodedata
from typing import Optional

import Levenshtein
from loguru import logger

from shelfscan.identification.models import EnrichedDetectedBook
from shelfscan.providers.types import DetectedBook
from shelfscan.storage.models import ExistingBook


# Fixed confidence for any heuristic collection match
MATCH_CONFIDENCE = 0.9

TITLE_SIMILARITY_THRESHOLD = 0.8
AUTHOR_SIMILARITY_THRESHOLD = 0.7

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_ISBN_SEPARATORS = re.compile(r"[\s-]")


# =============================================================================
# String helpers
# =============================================================================

def normalize_string(value: Optional[str]) -> str:
    """
    Normalize text for comparison.

    Lowercases, strips accents, drops punctuation and collapses whitespace.
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _NON_ALNUM.sub("", stripped)
    return _WHITESPACE.sub(" ", stripped).strip()


def string_similarity(a: str, b: str) -> float:
    """
    Normalized Levenshtein similarity in [0, 1].

    (len(longer) - distance) / len(longer); two empty strings score 1.0.
    """
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    distance = Levenshtein.distance(a, b)
    return (longer - distance) / longer


def normalize_isbn(isbn: Optional[str]) -> str:
    if not isbn:
        return ""
    return _ISBN_SEPARATORS.sub("", isbn).upper()


# =============================================================================
# Matcher
# =============================================================================

class CollectionMatcher:
    """
    Match detections against existing books.

    Usage:
        matcher = CollectionMatcher()
        enriched = matcher.match(detected_books, existing_books, detection_threshold=0.7)
    """

    def __init__(
        self,
        title_threshold: float = TITLE_SIMILARITY_THRESHOLD,
        author_threshold: float = AUTHOR_SIMILARITY_THRESHOLD,
        match_confidence: float = MATCH_CONFIDENCE,
    ):
        self.title_threshold = title_threshold
        self.author_threshold = author_threshold
        self.match_confidence = match_confidence

    def match(
        self,
        detected_books: list[DetectedBook],
        existing_books: list[ExistingBook],
        detection_threshold: float = 0.7,
    ) -> list[EnrichedDetectedBook]:
        """
        Wrap each detection and resolve it against the collection.

        Args:
            detected_books: Normalized detections, in detection order
            existing_books: The caller's stored books
            detection_threshold: Minimum detection confidence to flag a book
                as meeting the threshold

        Returns:
            One EnrichedDetectedBook per detection, same order
        """
        enriched = []
        matched = 0

        for book in detected_books:
            item = EnrichedDetectedBook(
                book=book,
                meets_detection_threshold=self.meets_threshold(book, detection_threshold),
            )

            existing = self.find_match(book, existing_books)
            if existing is not None:
                item.in_collection = True
                item.existing_book_id = existing.id
                item.match_confidence = self.match_confidence
                matched += 1

            enriched.append(item)

        logger.debug(f"Matched {matched}/{len(detected_books)} detections against {len(existing_books)} books")
        return enriched

    def find_match(
        self,
        book: DetectedBook,
        existing_books: list[ExistingBook],
    ) -> Optional[ExistingBook]:
        """First matching record: ISBN pass over all records, then title/author."""
        isbn = normalize_isbn(book.isbn)
        if isbn:
            for existing in existing_books:
                if normalize_isbn(existing.isbn) == isbn:
                    return existing

        title = normalize_string(book.title)
        if not title:
            return None
        author = normalize_string(book.author)

        for existing in existing_books:
            existing_title = normalize_string(existing.title)
            if string_similarity(title, existing_title) <= self.title_threshold:
                continue

            existing_author = normalize_string(existing.author)
            if author and existing_author:
                if string_similarity(author, existing_author) <= self.author_threshold:
                    continue

            return existing

        return None

    @staticmethod
    def meets_threshold(book: DetectedBook, detection_threshold: float) -> bool:
        """Unknown confidence never passes."""
        if book.confidence is None:
            return False
        return book.confidence >= detection_threshold
