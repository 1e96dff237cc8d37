"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Service instances (provider, repository, shelf analysis)
- Configuration
- Request identity
"""

from typing import Optional

from fastapi import Depends, Header

from shelfscan.api.middleware.error_handler import MissingUserError
from shelfscan.config import Settings, get_settings
from shelfscan.identification.google_books import GoogleBooksClient
from shelfscan.identification.matcher import CollectionMatcher
from shelfscan.identification.metadata_enricher import ExternalMetadataEnricher
from shelfscan.identification.service import ShelfAnalysisService
from shelfscan.providers.base import BaseVisionProvider
from shelfscan.providers.factory import ProviderRegistry
from shelfscan.providers.types import ImageAnalysisOptions
from shelfscan.storage.book_repository import BookRepository, InMemoryBookRepository


# =============================================================================
# Service Dependencies (Lazy Loading)
# =============================================================================

class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    Services are initialized on first access, so a missing backend key only
    fails the requests that need the backend.
    """

    def __init__(
        self,
        settings: Settings,
        provider: Optional[BaseVisionProvider] = None,
        repository: Optional[BookRepository] = None,
        google_books: Optional[GoogleBooksClient] = None,
    ):
        self.settings = settings
        self._provider = provider
        self._book_repository = repository
        self._google_books = google_books
        self._metadata_enricher = None
        self._matcher = None

    @property
    def provider(self) -> BaseVisionProvider:
        """Vision backend from the registry; raises AIProviderError when unconfigured."""
        if self._provider is not None:
            return self._provider
        return ProviderRegistry.get_provider(settings=self.settings)

    @property
    def book_repository(self) -> BookRepository:
        if self._book_repository is None:
            self._book_repository = InMemoryBookRepository()
        return self._book_repository

    @property
    def google_books(self) -> GoogleBooksClient:
        if self._google_books is None:
            self._google_books = GoogleBooksClient(
                api_key=self.settings.google_books_api_key,
                timeout=self.settings.google_books_timeout,
            )
        return self._google_books

    @property
    def metadata_enricher(self) -> ExternalMetadataEnricher:
        if self._metadata_enricher is None:
            self._metadata_enricher = ExternalMetadataEnricher(
                self.google_books,
                concurrency=self.settings.enrichment_concurrency,
            )
        return self._metadata_enricher

    @property
    def matcher(self) -> CollectionMatcher:
        if self._matcher is None:
            self._matcher = CollectionMatcher()
        return self._matcher

    @property
    def shelf_service(self) -> ShelfAnalysisService:
        """Built per access so the current registry provider is used."""
        return ShelfAnalysisService(
            provider=self.provider,
            repository=self.book_repository,
            matcher=self.matcher,
            enricher=self.metadata_enricher,
            detection_threshold=self.settings.min_confidence_threshold,
        )

    def default_options(self) -> ImageAnalysisOptions:
        return ImageAnalysisOptions(
            max_image_size_mb=self.settings.max_image_size_mb,
            compression_quality=self.settings.compression_quality,
            detection_threshold=self.settings.min_confidence_threshold,
            timeout=self.settings.request_timeout_seconds,
        )

    async def close(self) -> None:
        if self._google_books is not None:
            await self._google_books.close()


# Global service container
_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings, **overrides) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings, **overrides)
    return _service_container


def get_service_container() -> ServiceContainer:
    """Get service container instance."""
    if _service_container is None:
        # Auto-initialize with default settings if not explicitly initialized
        return init_services(get_settings())
    return _service_container


def reset_services() -> None:
    global _service_container
    _service_container = None


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_shelf_service(
    container: ServiceContainer = Depends(get_service_container),
) -> ShelfAnalysisService:
    """Dependency for the shelf analysis service."""
    return container.shelf_service


# =============================================================================
# Request Context Dependencies
# =============================================================================

async def get_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> str:
    """
    Caller identity, as established by the fronting auth layer.

    Raises:
        MissingUserError: If the header is absent or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise MissingUserError()
    return x_user_id.strip()
