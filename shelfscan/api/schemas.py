"""
API Schemas for ShelfScan

Pydantic models for request validation and response serialization:
- Analysis requests
- Shelf and single-book responses
- Collection writes
- Errors and health
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from shelfscan.providers.types import ImageAnalysisOptions, ReadabilityStatus


# =============================================================================
# Requests
# =============================================================================

class AnalyzeBookRequest(BaseModel):
    """Single cover analysis request."""

    image: str = Field(..., min_length=1, description="Base64 data-URI of the cover")

    @field_validator("image")
    @classmethod
    def strip_image(cls, v: str) -> str:
        return v.strip()


class AnalyzeShelfRequest(AnalyzeBookRequest):
    """Shelf photo analysis request."""

    compression_quality: Optional[float] = Field(None, ge=0.0, le=1.0)
    detection_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    timeout: Optional[float] = Field(None, gt=0, le=300, description="Backend timeout in seconds")

    def to_options(self, defaults: ImageAnalysisOptions) -> ImageAnalysisOptions:
        return ImageAnalysisOptions(
            max_image_size_mb=defaults.max_image_size_mb,
            compression_quality=(
                self.compression_quality
                if self.compression_quality is not None
                else defaults.compression_quality
            ),
            detection_threshold=(
                self.detection_threshold
                if self.detection_threshold is not None
                else defaults.detection_threshold
            ),
            timeout=self.timeout if self.timeout is not None else defaults.timeout,
        )


class NewBookSchema(BaseModel):
    """A book chosen from a scan to add to a shelf."""

    title: str = Field(..., min_length=1, max_length=500)
    author: Optional[str] = Field(None, max_length=200)
    isbn: Optional[str] = Field(None, max_length=20)
    cover_url: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = Field(None, ge=0, le=2100)
    category: Optional[str] = None
    language: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v


class AddBooksRequest(BaseModel):
    books: list[NewBookSchema] = Field(..., min_length=1)
    source: str = Field("shelf_scan", min_length=1, max_length=50)


# =============================================================================
# Responses
# =============================================================================

class BoundingBoxSchema(BaseModel):
    x: float
    y: float
    width: float
    height: float


class ImageMetadataSchema(BaseModel):
    width: int
    height: int
    format: str


class DetectedBookSchema(BaseModel):
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    position: BoundingBoxSchema
    confidence: Optional[float] = None
    readability_status: ReadabilityStatus


class ExternalMetadataSchema(BaseModel):
    cover_url: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    category: Optional[str] = None
    isbn: Optional[str] = None


class EnrichedBookSchema(DetectedBookSchema):
    in_collection: bool
    existing_book_id: Optional[str] = None
    match_confidence: Optional[float] = None
    meets_detection_threshold: bool
    external_metadata: Optional[ExternalMetadataSchema] = None


class ShelfAnalysisSchema(BaseModel):
    books: list[DetectedBookSchema]
    total_detected: int
    image_metadata: Optional[ImageMetadataSchema] = None


class CollectionStatsSchema(BaseModel):
    total_detected: int
    in_collection: int
    not_in_collection: int


class ShelfAnalysisResponse(BaseModel):
    """Shelf analysis resolved against the caller's collection."""

    analysis: ShelfAnalysisSchema
    enriched_books: list[EnrichedBookSchema]
    stats: CollectionStatsSchema
    degraded_phases: list[str] = Field(default_factory=list)
    default_selection: list[int] = Field(
        default_factory=list,
        description="Indices of new, readable books",
    )


class SingleBookResponse(BaseModel):
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    category: Optional[str] = None
    language: Optional[str] = None
    cover_url: Optional[str] = None


class AddBooksResponse(BaseModel):
    count: int
    ids: list[str]


class ErrorResponse(BaseModel):
    error: str
    code: str
    provider: Optional[str] = None
    retryable: bool = False
    detail: Optional[str] = None
    timestamp: datetime


class HealthResponse(BaseModel):
    status: str
    version: str
    components: dict[str, str] = Field(default_factory=dict)
    capabilities: Optional[dict[str, Any]] = None
