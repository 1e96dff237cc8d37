"""
Pytest configuration and fixtures for ShelfScan tests.
"""

import sys
from pathlib import Path
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image, ImageDraw

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shelfscan.config import Settings
from shelfscan.identification.google_books import GoogleBooksClient
from shelfscan.providers.factory import ProviderRegistry
from shelfscan.providers.types import ProviderConfig
from shelfscan.storage import ExistingBook, InMemoryBookRepository

from tests.fakes import FakeVisionProvider, get_test_settings, google_books_client, to_data_uri


# =============================================================================
# Test Settings
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return get_test_settings()


@pytest.fixture(autouse=True)
def clear_provider_registry():
    """Isolate the process-wide provider cache between tests."""
    ProviderRegistry.clear_cache()
    yield
    ProviderRegistry.clear_cache()


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture
def sample_bookshelf_image() -> Image.Image:
    """Generate synthetic bookshelf image for testing."""
    img = Image.new("RGB", (640, 480), color=(240, 240, 240))
    draw = ImageDraw.Draw(img)

    spine_colors = [
        (150, 50, 50),
        (50, 150, 50),
        (50, 50, 150),
        (150, 150, 50),
        (150, 50, 150),
    ]

    x_start = 50
    for i, color in enumerate(spine_colors):
        width = 40 + (i * 5)
        draw.rectangle([x_start, 100, x_start + width, 400], fill=color)
        x_start += width + 10

    return img


@pytest.fixture
def shelf_image_uri(sample_bookshelf_image) -> str:
    return to_data_uri(sample_bookshelf_image)


@pytest.fixture
def cover_image_uri() -> str:
    img = Image.new("RGB", (300, 450), color=(200, 180, 160))
    ImageDraw.Draw(img).rectangle([30, 30, 270, 80], fill=(50, 50, 50))
    return to_data_uri(img, "jpeg")


# =============================================================================
# Provider Fixtures
# =============================================================================

@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(api_key="sk-test", model="test-model", timeout=5.0)


@pytest.fixture
def shelf_payload() -> dict:
    """Backend JSON for a four-book shelf."""
    return {
        "books": [
            {
                "title": "Dune",
                "author": "Frank Herbert",
                "isbn": "978-0-441-17271-9",
                "confidence": 0.95,
                "position": {"x": 0.05, "y": 0.1, "width": 0.06, "height": 0.8},
            },
            {
                "title": "[partial] The Name of the W",
                "author": "Patrick Rothfuss",
                "confidence": 0.6,
                "position": {"x": 0.12, "y": 0.1, "width": 0.09, "height": 0.8},
            },
            {
                "title": "[unreadable]",
                "confidence": 0.1,
                "position": {"x": 0.22, "y": 0.1, "width": 0.04, "height": 0.8},
            },
            {
                "title": "Foundation",
                "author": "Isaac Asimov",
                "confidence": "0.88",
                "position": {"x": 0.27, "y": 0.1, "width": 0.05, "height": 0.8},
            },
        ]
    }


@pytest.fixture
def fake_provider(provider_config, shelf_payload) -> FakeVisionProvider:
    return FakeVisionProvider(
        provider_config,
        shelf_payload=shelf_payload,
        book_payload={"title": "Dune", "author": "Frank Herbert", "year": "1965"},
    )


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def existing_books() -> list[ExistingBook]:
    return [
        ExistingBook(id="book-dune", title="Dune", author="Frank Herbert", isbn="9780441172719"),
        ExistingBook(id="book-hobbit", title="The Hobbit", author="J.R.R. Tolkien"),
    ]


@pytest.fixture
def repository(existing_books) -> InMemoryBookRepository:
    repo = InMemoryBookRepository()
    repo.add_shelf("user-1", "shelf-1")
    for book in existing_books:
        repo.add_book("user-1", book)
    return repo


# =============================================================================
# Google Books Fixtures
# =============================================================================

@pytest.fixture
def empty_google_books() -> GoogleBooksClient:
    return google_books_client(lambda request: httpx.Response(200, json={"totalItems": 0}))


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def app(settings, fake_provider, repository, empty_google_books):
    """Create FastAPI application wired to test doubles."""
    from shelfscan.api import dependencies
    from shelfscan.api.main import create_app

    application = create_app(settings)
    dependencies.init_services(
        settings,
        provider=fake_provider,
        repository=repository,
        google_books=empty_google_books,
    )

    yield application

    dependencies.reset_services()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
