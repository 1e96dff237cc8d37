"""
Identification Module

Enrichment pipeline around the vision backend:
- Collection matching (ISBN, fuzzy title/author)
- External metadata lookup (Google Books)
- Selection of new books and store records
- Shelf analysis orchestration
"""

from shelfscan.identification.models import (
    CollectionStats,
    EnrichedDetectedBook,
    ExternalMetadata,
    ShelfAnalysisWithCollection,
)
from shelfscan.identification.matcher import (
    CollectionMatcher,
    normalize_isbn,
    normalize_string,
    string_similarity,
)
from shelfscan.identification.google_books import (
    BookMetadata,
    GoogleBooksClient,
    GoogleBooksError,
)
from shelfscan.identification.metadata_enricher import ExternalMetadataEnricher
from shelfscan.identification.selection import (
    build_new_books,
    create_source_tag,
    default_selection,
    get_source_name,
    is_source_tag,
    separate_tags,
)
from shelfscan.identification.service import AnalysisState, ShelfAnalysisService

__all__ = [
    # Models
    "CollectionStats",
    "EnrichedDetectedBook",
    "ExternalMetadata",
    "ShelfAnalysisWithCollection",
    # Matching
    "CollectionMatcher",
    "normalize_isbn",
    "normalize_string",
    "string_similarity",
    # External metadata
    "BookMetadata",
    "GoogleBooksClient",
    "GoogleBooksError",
    "ExternalMetadataEnricher",
    # Selection
    "build_new_books",
    "create_source_tag",
    "default_selection",
    "get_source_name",
    "is_source_tag",
    "separate_tags",
    # Orchestration
    "AnalysisState",
    "ShelfAnalysisService",
]
