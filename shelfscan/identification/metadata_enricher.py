"""
Metadata Enricher

Fills external bibliographic metadata for detections that are not yet in
the user's collection. Lookups run concurrently, bounded by a semaphore,
and one failed lookup never fails the batch.
"""

import asyncio
from typing import Optional

from loguru import logger

from shelfscan.identification.google_books import (
    BookMetadata,
    GoogleBooksClient,
    build_query,
)
from shelfscan.identification.models import EnrichedDetectedBook, ExternalMetadata


def to_external_metadata(
    metadata: BookMetadata,
    detected_isbn: Optional[str] = None,
) -> ExternalMetadata:
    """Project a lookup result onto the fields merged into a detection."""
    return ExternalMetadata(
        cover_url=metadata.cover_url,
        publisher=metadata.publisher,
        year=metadata.year,
        category=metadata.category,
        isbn=None if detected_isbn else metadata.primary_isbn,
    )


class ExternalMetadataEnricher:
    """
    Bounded fan-out over the bibliographic client.

    Usage:
        enricher = ExternalMetadataEnricher(GoogleBooksClient(), concurrency=5)
        await enricher.enrich(enriched_books)
    """

    def __init__(
        self,
        client: GoogleBooksClient,
        concurrency: int = 5,
    ):
        self.client = client
        self.concurrency = max(1, concurrency)

    async def enrich(self, books: list[EnrichedDetectedBook]) -> list[EnrichedDetectedBook]:
        """
        Enrich not-in-collection books in place.

        Args:
            books: Matched detections

        Returns:
            The same list, in the same order
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        targets = [book for book in books if not book.in_collection]

        async def enrich_one(book: EnrichedDetectedBook) -> bool:
            query = build_query(book.isbn, book.title, book.author)
            if not query:
                return False

            async with semaphore:
                try:
                    metadata = await self.client.lookup(query)
                except Exception as e:
                    logger.warning(f"Metadata lookup failed for '{query}': {e}")
                    return False

            if metadata is None:
                return False

            book.external_metadata = to_external_metadata(metadata, book.isbn)
            return True

        results = await asyncio.gather(*(enrich_one(book) for book in targets))

        logger.info(f"Enriched {sum(results)}/{len(targets)} books not in collection")
        return books

    async def lookup(
        self,
        isbn: Optional[str] = None,
        title: Optional[str] = None,
        author: Optional[str] = None,
    ) -> Optional[BookMetadata]:
        """Single lookup used by the cover flow. Errors propagate."""
        return await self.client.lookup(build_query(isbn, title, author))

    async def close(self):
        await self.client.close()
