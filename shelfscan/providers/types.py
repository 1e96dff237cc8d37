"""
Core Types

Provider-agnostic data model shared by every vision backend and by the
enrichment pipeline.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional


class ReadabilityStatus(str, Enum):
    """How legibly the backend could read a detected title."""
    CLEAR = "clear"
    PARTIAL = "partial"
    UNCERTAIN = "uncertain"
    UNREADABLE = "unreadable"


def clamp_unit(value: float) -> float:
    """Clamp a value into [0, 1]."""
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class BoundingBox:
    """
    Book location in normalized image coordinates.

    Origin is top-left; every component lies in [0, 1].
    """
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        for name in ("x", "y", "width", "height"):
            object.__setattr__(self, name, clamp_unit(float(getattr(self, name))))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DetectedBook:
    """One book detected by the vision backend."""
    title: str
    position: BoundingBox
    author: Optional[str] = None
    isbn: Optional[str] = None
    confidence: Optional[float] = None  # None means unknown, never 1.0
    readability_status: ReadabilityStatus = ReadabilityStatus.CLEAR

    @property
    def is_unreadable(self) -> bool:
        return self.readability_status == ReadabilityStatus.UNREADABLE

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "position": self.position.to_dict(),
            "confidence": self.confidence,
            "readability_status": self.readability_status.value,
        }


@dataclass
class ImageMetadata:
    """Dimensions and encoding of the analyzed image."""
    width: int
    height: int
    format: str


@dataclass
class ShelfAnalysisResult:
    """Normalized output of a shelf analysis call."""
    books: list[DetectedBook] = field(default_factory=list)
    image_metadata: Optional[ImageMetadata] = None

    @property
    def total_detected(self) -> int:
        return len(self.books)

    def to_dict(self) -> dict:
        return {
            "books": [book.to_dict() for book in self.books],
            "total_detected": self.total_detected,
            "image_metadata": asdict(self.image_metadata) if self.image_metadata else None,
        }


@dataclass
class SingleBookResult:
    """Normalized output of a single cover analysis."""
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    category: Optional[str] = None
    language: Optional[str] = None
    cover_url: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# Provider configuration
# =============================================================================

@dataclass(frozen=True)
class ProviderConfig:
    """Credentials and tunables, fixed for the adapter's lifetime."""
    api_key: str
    model: str
    max_tokens: int = 4096
    single_book_max_tokens: int = 1000
    temperature: float = 0.1  # Low for consistent output
    timeout: float = 60.0
    max_books_per_shelf: int = 100
    organization: Optional[str] = None


@dataclass
class ImageAnalysisOptions:
    """Per-request analysis options."""
    max_image_size_mb: Optional[float] = None
    compression_quality: float = 0.85
    # Advisory; applied by the collection matcher, not by adapters
    detection_threshold: float = 0.7
    timeout: Optional[float] = None


@dataclass(frozen=True)
class RateLimit:
    requests_per_minute: int
    tokens_per_minute: int


@dataclass(frozen=True)
class ProviderCapabilities:
    """Static, informational limits of a backend."""
    max_image_size_mb: float
    supports_vision: bool
    supports_batch_processing: bool
    supports_structured_output: bool
    rate_limit: Optional[RateLimit] = None

    def to_dict(self) -> dict:
        return asdict(self)
