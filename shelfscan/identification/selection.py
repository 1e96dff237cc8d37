"""
Selection and new-book candidates.

Turns an enriched shelf analysis into records ready for the book store, and
manages the "source:<name>" tags that mark where a book came from.
"""

from typing import Iterable, Optional

from shelfscan.identification.models import EnrichedDetectedBook
from shelfscan.storage.models import NewBookRecord


SOURCE_TAG_PREFIX = "source:"
DEFAULT_SOURCE = "shelf_scan"
METADATA_SOURCE = "ai_shelf_scan"
UNKNOWN_AUTHOR = "Unknown"

SOURCE_DISPLAY_NAMES = {
    "manual": "Manual Entry",
    "google_books": "Google Books",
    "shelf_scan": "Shelf Scan",
    "camera_live": "Camera (Live)",
    "photo_upload": "Photo Upload",
    "user_search": "User Search",
    "isbn_search": "ISBN Search",
}


# =============================================================================
# Source tags
# =============================================================================

def create_source_tag(source: str) -> str:
    return f"{SOURCE_TAG_PREFIX}{source}"


def is_source_tag(tag: str) -> bool:
    return tag.startswith(SOURCE_TAG_PREFIX)


def get_source_name(tag: str) -> str:
    if is_source_tag(tag):
        return tag[len(SOURCE_TAG_PREFIX):]
    return tag


def format_source_name(tag: str) -> str:
    """Display name for a source tag, falling back to the raw source name."""
    source = get_source_name(tag)
    return SOURCE_DISPLAY_NAMES.get(source, source)


def separate_tags(tags: Iterable[str]) -> tuple[list[str], list[str]]:
    """
    Split tags into (source_tags, user_tags), keeping order.
    """
    source_tags, user_tags = [], []
    for tag in tags:
        (source_tags if is_source_tag(tag) else user_tags).append(tag)
    return source_tags, user_tags


# =============================================================================
# Selection
# =============================================================================

def default_selection(books: list[EnrichedDetectedBook]) -> list[int]:
    """Indices of books that are new and readable."""
    return [
        index for index, book in enumerate(books)
        if not book.in_collection and not book.is_unreadable
    ]


def build_new_book(
    book: EnrichedDetectedBook,
    source: str = DEFAULT_SOURCE,
) -> NewBookRecord:
    """
    Build the store record for one detection.

    Raises:
        ValueError: If the detection is unreadable or has no title
    """
    if book.is_unreadable:
        raise ValueError(f"Cannot add unreadable detection '{book.title}'")
    title = (book.title or "").strip()
    if not title:
        raise ValueError("Cannot add a detection without a title")

    external = book.external_metadata
    return NewBookRecord(
        title=title,
        author=book.author or UNKNOWN_AUTHOR,
        isbn=book.effective_isbn,
        cover_url=external.cover_url if external else None,
        publisher=external.publisher if external else None,
        year=external.year if external else None,
        category=external.category if external else None,
        source_tags=[create_source_tag(source)],
        metadata_source=METADATA_SOURCE,
    )


def build_new_books(
    books: list[EnrichedDetectedBook],
    indices: Optional[list[int]] = None,
    source: str = DEFAULT_SOURCE,
) -> list[NewBookRecord]:
    """
    Build store records for the selected detections.

    Args:
        books: Enriched detections
        indices: Selected positions; defaults to default_selection(books)
        source: Source name recorded as a "source:" tag

    Raises:
        IndexError: If an index is out of range
        ValueError: If a selected detection is unreadable or untitled
    """
    if indices is None:
        indices = default_selection(books)

    records = []
    for index in indices:
        if index < 0 or index >= len(books):
            raise IndexError(f"No detected book at index {index}")
        records.append(build_new_book(books[index], source))
    return records
