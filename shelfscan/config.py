"""
Configuration for ShelfScan.

Settings are read from environment variables. Switching the vision backend
only requires changing AI_PROVIDER.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Vision backend
    ai_provider: str = "openai"  # openai, anthropic
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_organization: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    request_timeout_seconds: float = 60.0

    # Image processing
    max_image_size_mb: float = 5.0
    compression_quality: float = 0.85
    max_image_width: int = 2048

    # Detection
    min_confidence_threshold: float = 0.7
    max_books_per_shelf: int = 100  # Safety limit

    # External APIs
    google_books_api_key: Optional[str] = None
    google_books_timeout: float = 10.0
    enrichment_concurrency: int = 5

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            ai_provider=os.getenv("AI_PROVIDER", cls.ai_provider).lower(),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model),
            openai_organization=os.getenv("OPENAI_ORG"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", cls.anthropic_model),
            request_timeout_seconds=float(os.getenv("AI_REQUEST_TIMEOUT", cls.request_timeout_seconds)),
            max_image_size_mb=float(os.getenv("MAX_IMAGE_SIZE_MB", cls.max_image_size_mb)),
            compression_quality=float(os.getenv("COMPRESSION_QUALITY", cls.compression_quality)),
            max_image_width=int(os.getenv("MAX_IMAGE_WIDTH", cls.max_image_width)),
            min_confidence_threshold=float(os.getenv("MIN_CONFIDENCE_THRESHOLD", cls.min_confidence_threshold)),
            max_books_per_shelf=int(os.getenv("MAX_BOOKS_PER_SHELF", cls.max_books_per_shelf)),
            google_books_api_key=os.getenv("GOOGLE_BOOKS_API_KEY"),
            google_books_timeout=float(os.getenv("GOOGLE_BOOKS_TIMEOUT", cls.google_books_timeout)),
            enrichment_concurrency=int(os.getenv("ENRICHMENT_CONCURRENCY", cls.enrichment_concurrency)),
            environment=os.getenv("SHELFSCAN_ENV", cls.environment),
            debug=_env_bool("DEBUG", "true"),
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()
