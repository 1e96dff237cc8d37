"""
Book Repository

Interface to the book store consumed by the shelf analysis pipeline:
- Read a user's books for collection matching
- Create books selected from a scan

The pipeline only depends on BookRepository; InMemoryBookRepository backs
tests and local runs.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Optional

from loguru import logger

from shelfscan.storage.models import ExistingBook, NewBookRecord


class ShelfNotFoundError(LookupError):
    """Shelf does not exist or does not belong to the user."""


class BookRepository(ABC):
    """Abstract book store."""

    @abstractmethod
    async def list_user_books(self, user_id: str) -> list[ExistingBook]:
        """List every book in the user's libraries."""

    @abstractmethod
    async def create_books(
        self,
        user_id: str,
        shelf_id: str,
        records: list[NewBookRecord],
    ) -> list[str]:
        """
        Create books on a shelf.

        Returns:
            IDs of created books, in input order

        Raises:
            ShelfNotFoundError: If the shelf is not the user's
        """


class InMemoryBookRepository(BookRepository):
    """
    Dict-backed repository.

    Usage:
        repo = InMemoryBookRepository()
        repo.add_shelf("user-1", "shelf-1")
        repo.add_book("user-1", ExistingBook(id="b1", title="Dune"))
    """

    def __init__(self):
        self._books: dict[str, list[ExistingBook]] = defaultdict(list)
        self._shelves: dict[str, set[str]] = defaultdict(set)
        self._records: dict[str, NewBookRecord] = {}
        self._lock = asyncio.Lock()

    def add_shelf(self, user_id: str, shelf_id: str) -> None:
        self._shelves[user_id].add(shelf_id)

    def add_book(self, user_id: str, book: ExistingBook) -> None:
        self._books[user_id].append(book)

    def get_record(self, book_id: str) -> Optional[NewBookRecord]:
        return self._records.get(book_id)

    async def list_user_books(self, user_id: str) -> list[ExistingBook]:
        return list(self._books.get(user_id, []))

    async def create_books(
        self,
        user_id: str,
        shelf_id: str,
        records: list[NewBookRecord],
    ) -> list[str]:
        if shelf_id not in self._shelves.get(user_id, set()):
            raise ShelfNotFoundError(f"Shelf {shelf_id} not found for user")

        created = []
        async with self._lock:
            for record in records:
                book_id = str(uuid.uuid4())
                self._records[book_id] = record
                self._books[user_id].append(
                    ExistingBook(id=book_id, title=record.title, author=record.author, isbn=record.isbn)
                )
                created.append(book_id)

        logger.info(f"Created {len(created)} books on shelf {shelf_id}")
        return created
