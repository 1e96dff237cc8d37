"""
Anthropic Vision Provider

Claude adapter using the messages API with a base64 image block. Claude has
no JSON response mode, so the prompt asks for bare JSON and the text is
parsed leniently.
"""

from typing import Any, Optional

import anthropic
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


class AnthropicVisionProvider(BaseVisionProvider):
    """Anthropic Claude vision backend."""

    name = "Anthropic"
    version = "1.0.0"

    def __init__(self, config: ProviderConfig, client: Optional[Any] = None, **kwargs):
        super().__init__(config, **kwargs)
        self._client = client

    def _get_client(self):
        """Lazy initialization of the Anthropic client."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.config.api_key,
                timeout=self.config.timeout,
                max_retries=0,
            )
        return self._client

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            max_image_size_mb=5,
            supports_vision=True,
            supports_batch_processing=False,
            supports_structured_output=False,
            rate_limit=RateLimit(requests_per_minute=50, tokens_per_minute=40000),
        )

    async def call_single_book_api(
        self, image: ProcessedImage, options: ImageAnalysisOptions
    ) -> dict:
        prompt = VisionPrompts.single_book(structured_output=False)
        return await self._complete(prompt, image, self.config.single_book_max_tokens)

    async def call_shelf_analysis_api(
        self, image: ProcessedImage, options: ImageAnalysisOptions
    ) -> dict:
        prompt = VisionPrompts.shelf(structured_output=False)
        return await self._complete(prompt, image, self.config.max_tokens)

    async def _complete(self, prompt: str, image: ProcessedImage, max_tokens: int) -> dict:
        client = self._get_client()

        response = await client.messages.create(
            model=self.config.model,
            max_tokens=max_tokens,
            temperature=self.config.temperature,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": image.media_type,
                                "data": image.base64_payload,
                            },
                        },
                        {"type": "text", "text": prompt},
                    ],
                }
            ],
        )

        stop_reason = getattr(response, "stop_reason", None) or "unknown"
        if stop_reason == "refusal":
            raise self._error(
                AIErrorCode.MODEL_UNAVAILABLE,
                "Anthropic refused the request. Please try a different photo.",
                retryable=True,
            )

        text = "".join(
            block.text for block in (response.content or [])
            if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise self._error(
                AIErrorCode.PARSING_ERROR,
                f"Empty response from Anthropic. Stop reason: {stop_reason}",
            )

        if stop_reason == "max_tokens":
            logger.warning("[Anthropic] Response hit max_tokens, JSON may be truncated")

        return parse_json_payload(text)

    def normalize_single_book_response(self, raw: dict) -> SingleBookResult:
        return normalize_single_book_payload(raw)

    def normalize_shelf_response(self, raw: dict) -> ShelfAnalysisResult:
        books = normalize_shelf_payload(raw, max_books=self.config.max_books_per_shelf)
        return ShelfAnalysisResult(books=books)

    def map_provider_error(self, error: Exception) -> Optional[AIProviderError]:
        if isinstance(error, anthropic.RateLimitError):
            return self._error(
                AIErrorCode.RATE_LIMIT_EXCEEDED,
                "Rate limit exceeded. Please try again later.",
                retryable=True,
                cause=error,
            )
        if isinstance(error, anthropic.APITimeoutError):
            return self._error(
                AIErrorCode.NETWORK_ERROR, "Request timed out", retryable=True, cause=error
            )
        if isinstance(error, anthropic.APIConnectionError):
            return self._error(
                AIErrorCode.NETWORK_ERROR,
                "Could not reach Anthropic",
                retryable=True,
                cause=error,
            )
        if isinstance(error, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
            return self._error(
                AIErrorCode.INVALID_API_KEY, "Anthropic rejected the API key", cause=error
            )
        if isinstance(error, anthropic.APIStatusError) and error.status_code >= 500:
            # 529 is Anthropic's "overloaded"
            return self._error(
                AIErrorCode.MODEL_UNAVAILABLE,
                f"Anthropic model unavailable (HTTP {error.status_code})",
                retryable=True,
                cause=error,
            )
        return None
