"""
Shelf Analysis Service

Orchestrates a shelf scan end to end:
    Idle -> Analyzing -> Matching -> Enriching -> Done

A backend failure while Analyzing is fatal and surfaces the AIProviderError
unchanged. Failures while Matching or Enriching degrade the result: books
are still returned, only the collection or enrichment fields are missing.
"""

from enum import Enum
from typing import Callable, Optional

from loguru import logger

from shelfscan.identification.matcher import CollectionMatcher
from shelfscan.identification.metadata_enricher import ExternalMetadataEnricher
from shelfscan.identification.models import (
    EnrichedDetectedBook,
    ShelfAnalysisWithCollection,
)
from shelfscan.identification.selection import (
    DEFAULT_SOURCE,
    build_new_books,
    default_selection,
)
from shelfscan.providers.base import BaseVisionProvider
from shelfscan.providers.errors import AIProviderError
from shelfscan.providers.types import ImageAnalysisOptions, SingleBookResult
from shelfscan.storage.book_repository import BookRepository
from shelfscan.storage.models import NewBookRecord


class AnalysisState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    MATCHING = "matching"
    ENRICHING = "enriching"
    DONE = "done"
    ERRORED = "errored"


_TRANSITIONS = {
    AnalysisState.IDLE: {AnalysisState.ANALYZING},
    AnalysisState.ANALYZING: {AnalysisState.MATCHING, AnalysisState.ERRORED},
    AnalysisState.MATCHING: {AnalysisState.ENRICHING},
    AnalysisState.ENRICHING: {AnalysisState.DONE},
    AnalysisState.DONE: set(),
    AnalysisState.ERRORED: set(),
}

StateListener = Callable[[AnalysisState], None]


class _AnalysisRun:
    """State of one analysis call. Never shared between calls."""

    def __init__(self, listener: Optional[StateListener] = None):
        self.state = AnalysisState.IDLE
        self.listener = listener

    def advance(self, state: AnalysisState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid analysis transition {self.state.value} -> {state.value}")
        logger.debug(f"Shelf analysis: {self.state.value} -> {state.value}")
        self.state = state
        if self.listener:
            self.listener(state)


class ShelfAnalysisService:
    """
    Shelf analysis orchestrator.

    Usage:
        service = ShelfAnalysisService(provider, repository, enricher=enricher)
        result = await service.analyze_shelf(image, user_id="user-1")
        ids = await service.add_books("user-1", "shelf-1", result)
    """

    def __init__(
        self,
        provider: BaseVisionProvider,
        repository: BookRepository,
        matcher: Optional[CollectionMatcher] = None,
        enricher: Optional[ExternalMetadataEnricher] = None,
        detection_threshold: float = 0.7,
    ):
        """
        Initialize service.

        Args:
            provider: Vision backend adapter
            repository: Book store, read for matching and written by add_books
            matcher: Collection matcher
            enricher: External metadata enricher; enrichment is skipped when None
            detection_threshold: Default detection confidence threshold
        """
        self.provider = provider
        self.repository = repository
        self.matcher = matcher or CollectionMatcher()
        self.enricher = enricher
        self.detection_threshold = detection_threshold

    # =========================================================================
    # Shelf flow
    # =========================================================================

    async def analyze_shelf(
        self,
        image: str,
        user_id: str,
        options: Optional[ImageAnalysisOptions] = None,
        on_state: Optional[StateListener] = None,
    ) -> ShelfAnalysisWithCollection:
        """
        Analyze a shelf photo and resolve detections against the collection.

        Args:
            image: Base64 data-URI
            user_id: Owner of the collection to match against
            options: Per-call analysis options
            on_state: Called with each state entered

        Returns:
            ShelfAnalysisWithCollection in detection order

        Raises:
            AIProviderError: If the backend call fails
        """
        options = options or ImageAnalysisOptions(detection_threshold=self.detection_threshold)
        run = _AnalysisRun(on_state)

        run.advance(AnalysisState.ANALYZING)
        try:
            analysis = await self.provider.analyze_shelf(image, options)
        except AIProviderError:
            run.advance(AnalysisState.ERRORED)
            raise

        result = ShelfAnalysisWithCollection(analysis=analysis)

        run.advance(AnalysisState.MATCHING)
        result.enriched_books = await self._match(result, user_id, options.detection_threshold)

        run.advance(AnalysisState.ENRICHING)
        await self._enrich(result)

        run.advance(AnalysisState.DONE)
        stats = result.stats
        logger.info(
            f"Shelf analysis done: {stats.total_detected} detected, "
            f"{stats.in_collection} in collection, {stats.not_in_collection} new"
        )
        return result

    async def _match(
        self,
        result: ShelfAnalysisWithCollection,
        user_id: str,
        detection_threshold: float,
    ) -> list[EnrichedDetectedBook]:
        books = result.analysis.books
        try:
            existing = await self.repository.list_user_books(user_id)
            return self.matcher.match(books, existing, detection_threshold)
        except Exception as e:
            logger.warning(f"Collection matching degraded: {e}")
            result.degraded_phases.append(AnalysisState.MATCHING.value)
            return [
                EnrichedDetectedBook(
                    book=book,
                    meets_detection_threshold=CollectionMatcher.meets_threshold(book, detection_threshold),
                )
                for book in books
            ]

    async def _enrich(self, result: ShelfAnalysisWithCollection) -> None:
        if self.enricher is None:
            return
        try:
            await self.enricher.enrich(result.enriched_books)
        except Exception as e:
            logger.warning(f"Metadata enrichment degraded: {e}")
            result.degraded_phases.append(AnalysisState.ENRICHING.value)

    # =========================================================================
    # Single-book flow
    # =========================================================================

    async def analyze_book(
        self,
        image: str,
        options: Optional[ImageAnalysisOptions] = None,
    ) -> SingleBookResult:
        """
        Analyze one cover and fill gaps from the bibliographic service.

        External values only fill fields the backend left empty, plus the
        cover URL. A failed lookup leaves the backend result untouched.

        Raises:
            AIProviderError: If the backend call fails
        """
        result = await self.provider.analyze_single_book(image, options)

        if self.enricher is None:
            return result

        try:
            metadata = await self.enricher.lookup(result.isbn, result.title, result.author)
        except Exception as e:
            logger.warning(f"Cover metadata lookup failed for '{result.title}': {e}")
            return result

        if metadata is None:
            return result

        result.author = result.author or metadata.primary_author
        result.isbn = result.isbn or metadata.primary_isbn
        result.publisher = result.publisher or metadata.publisher
        result.year = result.year or metadata.year
        result.category = result.category or metadata.category
        result.language = result.language or metadata.language
        result.cover_url = result.cover_url or metadata.cover_url
        return result

    # =========================================================================
    # Collection writes
    # =========================================================================

    async def add_books(
        self,
        user_id: str,
        shelf_id: str,
        result: ShelfAnalysisWithCollection,
        indices: Optional[list[int]] = None,
        source: str = DEFAULT_SOURCE,
    ) -> list[str]:
        """
        Store selected detections and flag them as in the collection.

        Args:
            indices: Positions in result.enriched_books; defaults to the
                new, readable books

        Returns:
            Created book IDs, in selection order
        """
        if indices is None:
            indices = default_selection(result.enriched_books)

        records = build_new_books(result.enriched_books, indices, source)
        ids = await self.save_records(user_id, shelf_id, records)

        for index, book_id in zip(indices, ids):
            result.mark_added(index, book_id)
        return ids

    async def save_records(
        self,
        user_id: str,
        shelf_id: str,
        records: list[NewBookRecord],
    ) -> list[str]:
        if not records:
            return []
        return await self.repository.create_books(user_id, shelf_id, records)
