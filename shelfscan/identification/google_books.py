"""
Google Books API Client

Looks up a single best volume for a detected book using the Google Books
Volume API.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from loguru import logger


class GoogleBooksError(Exception):
    """The Volume API answered with a non-200 status."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(f"Google Books API error {status_code}: {message}")


@dataclass
class BookMetadata:
    """Standardized book metadata from the Volume API."""
    title: str
    authors: list[str] = field(default_factory=list)
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    cover_url: Optional[str] = None
    language: Optional[str] = None
    isbn_10: Optional[str] = None
    isbn_13: Optional[str] = None
    google_books_id: Optional[str] = None

    @property
    def primary_isbn(self) -> Optional[str]:
        """ISBN-13 when present, else ISBN-10."""
        return self.isbn_13 or self.isbn_10

    @property
    def primary_author(self) -> Optional[str]:
        return self.authors[0] if self.authors else None

    @property
    def category(self) -> Optional[str]:
        return self.categories[0] if self.categories else None

    @property
    def year(self) -> Optional[int]:
        """Year from the first four characters of published_date."""
        if not self.published_date:
            return None
        head = self.published_date[:4]
        return int(head) if head.isdigit() else None


def build_query(
    isbn: Optional[str] = None,
    title: Optional[str] = None,
    author: Optional[str] = None,
) -> str:
    """
    Build a Volume API query.

    ISBN wins when present; otherwise "title author".
    """
    if isbn and isbn.strip():
        return f"isbn:{isbn.strip()}"
    parts = [part.strip() for part in (title, author) if part and part.strip()]
    return " ".join(parts)


class GoogleBooksClient:
    """
    Client for Google Books API.

    Rate limit: 1000 requests/day without API key.
    """

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize client.

        Args:
            api_key: Optional API key. Without one, rate limits are lower.
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        if not self.api_key:
            logger.warning("No Google Books API key provided. Rate limits will be lower.")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def lookup(self, query: str) -> Optional[BookMetadata]:
        """
        Fetch the single best volume for a query.

        Args:
            query: "isbn:..." or free text

        Returns:
            BookMetadata, or None when the query is empty or nothing matched

        Raises:
            GoogleBooksError: On a non-200 response
            httpx.HTTPError: On transport failures
        """
        if not query or not query.strip():
            return None

        params = {"q": query, "maxResults": 1}
        if self.api_key:
            params["key"] = self.api_key

        client = await self._get_client()
        response = await client.get(self.BASE_URL, params=params)

        if response.status_code != 200:
            raise GoogleBooksError(response.status_code, response.text[:200])

        items = response.json().get("items") or []
        if not items:
            logger.debug(f"No Google Books result for '{query}'")
            return None

        return self._parse_volume(items[0])

    async def lookup_book(
        self,
        isbn: Optional[str] = None,
        title: Optional[str] = None,
        author: Optional[str] = None,
    ) -> Optional[BookMetadata]:
        return await self.lookup(build_query(isbn, title, author))

    def _parse_volume(self, item: dict[str, Any]) -> BookMetadata:
        """Parse raw API response into BookMetadata."""
        volume_info = item.get("volumeInfo", {})

        # Extract identifiers
        isbn_10 = None
        isbn_13 = None
        for identifier in volume_info.get("industryIdentifiers", []):
            if identifier.get("type") == "ISBN_10":
                isbn_10 = identifier.get("identifier")
            elif identifier.get("type") == "ISBN_13":
                isbn_13 = identifier.get("identifier")

        # Extract thumbnail
        image_links = volume_info.get("imageLinks", {})
        thumbnail = image_links.get("thumbnail") or image_links.get("smallThumbnail")
        if thumbnail:
            thumbnail = thumbnail.replace("http://", "https://")

        return BookMetadata(
            title=volume_info.get("title", "Unknown Title"),
            authors=volume_info.get("authors", []),
            publisher=volume_info.get("publisher"),
            published_date=volume_info.get("publishedDate"),
            categories=volume_info.get("categories", []),
            cover_url=thumbnail,
            language=volume_info.get("language"),
            isbn_10=isbn_10,
            isbn_13=isbn_13,
            google_books_id=item.get("id"),
        )

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
