"""
OpenAI Vision Provider

GPT-4o family adapter using chat completions with an image part and JSON
response mode.
"""

from typing import Any, Optional

import openai
from loguru import logger

from shelfscan.providers.base import BaseVisionProvider
from shelfscan.providers.errors import AIErrorCode, AIProviderError
from shelfscan.providers.image_processor import ProcessedImage
from shelfscan.providers.normalizer import (
    normalize_shelf_payload,
    normalize_single_book_payload,
    parse_json_payload,
)
from shelfscan.providers.prompts import VisionPrompts
from shelfscan.providers.types import (
    ImageAnalysisOptions,
    ProviderCapabilities,
    ProviderConfig,
    RateLimit,
    ShelfAnalysisResult,
    SingleBookResult,
)


class OpenAIVisionProvider(BaseVisionProvider):
    """
    OpenAI vision backend.

    Usage:
        provider = OpenAIVisionProvider(ProviderConfig(api_key="sk-...", model="gpt-4o"))
        result = await provider.analyze_shelf(data_uri)
    """

    name = "OpenAI"
    version = "1.0.0"

    def __init__(self, config: ProviderConfig, client: Optional[Any] = None, **kwargs):
        """
        Initialize OpenAI provider.

        Args:
            config: Provider configuration
            client: Pre-built AsyncOpenAI client (tests)
            **kwargs: Passed to BaseVisionProvider
        """
        super().__init__(config, **kwargs)
        self._client = client

    def _get_client(self):
        """Lazy initialization of the OpenAI client."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.config.api_key,
                organization=self.config.organization,
                timeout=self.config.timeout,
                max_retries=0,
            )
        return self._client

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            max_image_size_mb=20,
            supports_vision=True,
            supports_batch_processing=False,
            supports_structured_output=True,
            rate_limit=RateLimit(requests_per_minute=500, tokens_per_minute=30000),
        )

    # =========================================================================
    # Backend calls
    # =========================================================================

    async def call_single_book_api(
        self, image: ProcessedImage, options: ImageAnalysisOptions
    ) -> dict:
        return await self._complete(
            VisionPrompts.single_book(), image, self.config.single_book_max_tokens
        )

    async def call_shelf_analysis_api(
        self, image: ProcessedImage, options: ImageAnalysisOptions
    ) -> dict:
        return await self._complete(VisionPrompts.shelf(), image, self.config.max_tokens)

    async def _complete(self, prompt: str, image: ProcessedImage, max_tokens: int) -> dict:
        client = self._get_client()

        response = await client.chat.completions.create(
            model=self.config.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image.data_uri}},
                    ],
                }
            ],
            response_format={"type": "json_object"},
            max_tokens=max_tokens,
            temperature=self.config.temperature,
        )

        choice = response.choices[0] if response.choices else None
        message = choice.message if choice else None
        finish_reason = getattr(choice, "finish_reason", None) or "unknown"

        refusal = getattr(message, "refusal", None)
        if refusal:
            raise self._error(
                AIErrorCode.MODEL_UNAVAILABLE,
                f"OpenAI refused the request: {refusal}. The image may violate content "
                f"policy, please try a different photo.",
                retryable=True,
            )

        content = getattr(message, "content", None)
        if not content:
            raise self._error(
                AIErrorCode.PARSING_ERROR,
                f"Empty response from OpenAI. Finish reason: {finish_reason}",
            )

        logger.debug(f"[OpenAI] Response received ({len(content)} chars, finish={finish_reason})")
        return parse_json_payload(content)

    # =========================================================================
    # Normalization
    # =========================================================================

    def normalize_single_book_response(self, raw: dict) -> SingleBookResult:
        return normalize_single_book_payload(raw)

    def normalize_shelf_response(self, raw: dict) -> ShelfAnalysisResult:
        books = normalize_shelf_payload(raw, max_books=self.config.max_books_per_shelf)
        return ShelfAnalysisResult(books=books)

    def map_provider_error(self, error: Exception) -> Optional[AIProviderError]:
        if isinstance(error, openai.RateLimitError):
            return self._error(
                AIErrorCode.RATE_LIMIT_EXCEEDED,
                "Rate limit exceeded. Please try again later.",
                retryable=True,
                cause=error,
            )
        if isinstance(error, openai.APITimeoutError):
            return self._error(
                AIErrorCode.NETWORK_ERROR, "Request timed out", retryable=True, cause=error
            )
        if isinstance(error, openai.APIConnectionError):
            return self._error(
                AIErrorCode.NETWORK_ERROR,
                "Could not reach OpenAI",
                retryable=True,
                cause=error,
            )
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return self._error(AIErrorCode.INVALID_API_KEY, "OpenAI rejected the API key", cause=error)
        if isinstance(error, openai.APIStatusError) and error.status_code >= 500:
            return self._error(
                AIErrorCode.MODEL_UNAVAILABLE,
                f"OpenAI model unavailable (HTTP {error.status_code})",
                retryable=True,
                cause=error,
            )
        if isinstance(error, openai.BadRequestError) and "image" in str(error).lower():
            return self._error(
                AIErrorCode.INVALID_IMAGE_FORMAT,
                "OpenAI could not process the image",
                cause=error,
            )
        return None
