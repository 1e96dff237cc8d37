"""
Base Vision Provider

Template-method base shared by every vision backend adapter:

    validate -> preprocess -> backend call -> normalize

Subclasses supply the backend call, the response normalization and an
optional SDK error mapping. Instances are shared across concurrent requests
and hold no state besides their immutable configuration.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Optional

from loguru import logger

from shelfscan.providers.errors import AIErrorCode, AIProviderError, MalformedResponseError
from shelfscan.providers.image_processor import (
    InvalidImageError,
    ProcessedImage,
    process_image,
    validate_image,
)
from shelfscan.providers.types import (
    ImageAnalysisOptions,
    ImageMetadata,
    ProviderCapabilities,
    ProviderConfig,
    ShelfAnalysisResult,
    SingleBookResult,
)


class BaseVisionProvider(ABC):
    """Abstract base class for vision backends."""

    name: str = "base"
    version: str = "1.0.0"

    def __init__(
        self,
        config: ProviderConfig,
        max_image_width: int = 2048,
        default_max_image_size_mb: float = 5.0,
    ):
        """
        Initialize provider.

        Args:
            config: Credentials and tunables
            max_image_width: Images wider than this are downsized
            default_max_image_size_mb: Size limit when options do not set one

        Raises:
            AIProviderError: INVALID_API_KEY if credentials are missing
        """
        self.config = config
        self.max_image_width = max_image_width
        self.default_max_image_size_mb = default_max_image_size_mb
        self.validate_config()

    # =========================================================================
    # Public contract
    # =========================================================================

    async def analyze_single_book(
        self,
        image: str,
        options: Optional[ImageAnalysisOptions] = None,
    ) -> SingleBookResult:
        """
        Analyze a single book cover.

        Args:
            image: Image as a base64 data URI
            options: Analysis options

        Returns:
            SingleBookResult

        Raises:
            AIProviderError: On any failure
        """
        options = options or ImageAnalysisOptions()
        try:
            processed = await self._prepare_image(image, options)
            raw = await self._with_timeout(
                self.call_single_book_api(processed, options), options
            )
            return self.normalize_single_book_response(raw)
        except AIProviderError as e:
            self._log_error(e, "analyze_single_book")
            raise
        except Exception as e:
            raise self.handle_error(e, "analyze_single_book") from e

    async def analyze_shelf(
        self,
        image: str,
        options: Optional[ImageAnalysisOptions] = None,
    ) -> ShelfAnalysisResult:
        """
        Detect every book in a shelf photo.

        Args:
            image: Image as a base64 data URI
            options: Analysis options

        Returns:
            ShelfAnalysisResult

        Raises:
            AIProviderError: On any failure
        """
        options = options or ImageAnalysisOptions()
        try:
            processed = await self._prepare_image(image, options)
            logger.info(
                f"[{self.name}] Calling shelf analysis "
                f"({processed.width}x{processed.height}, {len(processed.data_uri)} chars)"
            )
            raw = await self._with_timeout(
                self.call_shelf_analysis_api(processed, options), options
            )
            result = self.normalize_shelf_response(raw)
        except AIProviderError as e:
            self._log_error(e, "analyze_shelf")
            raise
        except Exception as e:
            raise self.handle_error(e, "analyze_shelf") from e

        if result.image_metadata is None:
            result.image_metadata = ImageMetadata(
                width=processed.width,
                height=processed.height,
                format=processed.format,
            )

        logger.info(f"[{self.name}] Detected {result.total_detected} books")
        return result

    def validate_config(self) -> bool:
        """Check that required credentials are present."""
        if not self.config.api_key:
            raise AIProviderError(
                AIErrorCode.INVALID_API_KEY,
                "API key is missing",
                self.name,
            )
        return True

    @abstractmethod
    def get_capabilities(self) -> ProviderCapabilities:
        """Static limits and features of this backend."""

    # =========================================================================
    # Backend hooks
    # =========================================================================

    @abstractmethod
    async def call_single_book_api(
        self, image: ProcessedImage, options: ImageAnalysisOptions
    ) -> Any:
        """Run the backend call for a single cover, returning raw output."""

    @abstractmethod
    async def call_shelf_analysis_api(
        self, image: ProcessedImage, options: ImageAnalysisOptions
    ) -> Any:
        """Run the backend call for a shelf photo, returning raw output."""

    @abstractmethod
    def normalize_single_book_response(self, raw: Any) -> SingleBookResult:
        """Map raw single-cover output to SingleBookResult."""

    @abstractmethod
    def normalize_shelf_response(self, raw: Any) -> ShelfAnalysisResult:
        """Map raw shelf output to ShelfAnalysisResult."""

    def map_provider_error(self, error: Exception) -> Optional[AIProviderError]:
        """Translate SDK-specific exceptions. Returns None if unrecognized."""
        return None

    # =========================================================================
    # Shared logic
    # =========================================================================

    def max_image_size_mb(self, options: ImageAnalysisOptions) -> float:
        limit = options.max_image_size_mb or self.default_max_image_size_mb
        return min(limit, self.get_capabilities().max_image_size_mb)

    async def _prepare_image(
        self, image: str, options: ImageAnalysisOptions
    ) -> ProcessedImage:
        validation = validate_image(image, max_size_mb=self.max_image_size_mb(options))
        if not validation.valid:
            raise AIProviderError(
                AIErrorCode.INVALID_IMAGE_FORMAT,
                validation.error or "Invalid image format",
                self.name,
            )

        return await asyncio.to_thread(
            process_image,
            image,
            max_width=self.max_image_width,
            quality=0.85 if options.compression_quality is None else options.compression_quality,
            format="jpeg",
        )

    async def _with_timeout(self, call: Awaitable[Any], options: ImageAnalysisOptions) -> Any:
        # wait_for cancels the in-flight call when the deadline passes
        timeout = options.timeout or self.config.timeout
        return await asyncio.wait_for(call, timeout=timeout)

    def _error(
        self,
        code: AIErrorCode,
        message: str,
        retryable: bool = False,
        cause: Optional[BaseException] = None,
    ) -> AIProviderError:
        return AIProviderError(code, message, self.name, retryable=retryable, cause=cause)

    def handle_error(self, error: Exception, operation: str) -> AIProviderError:
        """
        Map any exception raised during an operation to AIProviderError.

        Only RATE_LIMIT_EXCEEDED, NETWORK_ERROR and MODEL_UNAVAILABLE are
        marked retryable.
        """
        if isinstance(error, AIProviderError):
            self._log_error(error, operation)
            return error

        if isinstance(error, InvalidImageError):
            mapped = self._error(AIErrorCode.INVALID_IMAGE_FORMAT, str(error), cause=error)
        elif isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            mapped = self._error(
                AIErrorCode.NETWORK_ERROR, "Request timed out", retryable=True, cause=error
            )
        elif isinstance(error, (MalformedResponseError, json.JSONDecodeError)):
            mapped = self._error(
                AIErrorCode.PARSING_ERROR,
                f"Could not parse {self.name} response: {error}",
                cause=error,
            )
        else:
            mapped = self.map_provider_error(error) or self._map_by_message(error, operation)

        self._log_error(mapped, operation)
        return mapped

    def _map_by_message(self, error: Exception, operation: str) -> AIProviderError:
        message = str(error).lower()
        if "rate limit" in message:
            return self._error(
                AIErrorCode.RATE_LIMIT_EXCEEDED,
                "Rate limit exceeded. Please try again later.",
                retryable=True,
                cause=error,
            )
        if "timeout" in message or "timed out" in message:
            return self._error(
                AIErrorCode.NETWORK_ERROR, "Request timed out", retryable=True, cause=error
            )
        return self._error(
            AIErrorCode.UNKNOWN_ERROR,
            f"Failed to {operation.replace('_', ' ')}",
            cause=error,
        )

    def _log_error(self, error: AIProviderError, operation: str) -> None:
        if error.code == AIErrorCode.PARSING_ERROR:
            logger.error(f"[{self.name}] Prompt contract violation in {operation}: {error.message}")
        elif error.retryable:
            logger.warning(f"[{self.name}] Transient failure in {operation}: {error.code.value} - {error.message}")
        else:
            logger.error(f"[{self.name}] {operation} failed: {error.code.value} - {error.message}")
