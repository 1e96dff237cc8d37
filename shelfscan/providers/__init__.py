"""
Vision Provider Module

Pluggable vision backends behind a common analysis contract:
- Template-method base with shared validation and error mapping
- OpenAI and Anthropic adapters
- Response normalization and readability extraction
- Process-wide provider registry
"""

from shelfscan.providers.types import (
    BoundingBox,
    DetectedBook,
    ImageAnalysisOptions,
    ImageMetadata,
    ProviderCapabilities,
    ProviderConfig,
    RateLimit,
    ReadabilityStatus,
    ShelfAnalysisResult,
    SingleBookResult,
)
from shelfscan.providers.errors import AIErrorCode, AIProviderError
from shelfscan.providers.base import BaseVisionProvider
from shelfscan.providers.openai_provider import OpenAIVisionProvider
from shelfscan.providers.anthropic_provider import AnthropicVisionProvider
from shelfscan.providers.factory import (
    ProviderRegistry,
    ProviderType,
    clear_cache,
    get_ai_provider,
)

__all__ = [
    # Types
    "BoundingBox",
    "DetectedBook",
    "ImageAnalysisOptions",
    "ImageMetadata",
    "ProviderCapabilities",
    "ProviderConfig",
    "RateLimit",
    "ReadabilityStatus",
    "ShelfAnalysisResult",
    "SingleBookResult",
    # Errors
    "AIErrorCode",
    "AIProviderError",
    # Providers
    "BaseVisionProvider",
    "OpenAIVisionProvider",
    "AnthropicVisionProvider",
    # Registry
    "ProviderRegistry",
    "ProviderType",
    "clear_cache",
    "get_ai_provider",
]
