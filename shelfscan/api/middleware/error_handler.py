"""
Error Handling Middleware for ShelfScan

Centralized error handling:
- AIProviderError envelope with a status derived from its code
- Structured error responses for API errors
- Logging of unexpected errors
"""

import traceback
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from shelfscan.providers.errors import AIErrorCode, AIProviderError


class ShelfScanException(Exception):
    """Base exception for API-level errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class NotFoundError(ShelfScanException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No {resource} with identifier '{identifier}' exists",
        )


class MissingUserError(ShelfScanException):
    """Request carries no user identity."""

    def __init__(self):
        super().__init__(
            message="User identity required",
            code="UNAUTHORIZED",
            status_code=401,
            detail="Send the X-User-ID header",
        )


PROVIDER_ERROR_STATUS = {
    AIErrorCode.INVALID_IMAGE_FORMAT: status.HTTP_400_BAD_REQUEST,
    AIErrorCode.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    AIErrorCode.PARSING_ERROR: status.HTTP_502_BAD_GATEWAY,
    AIErrorCode.MODEL_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    AIErrorCode.NETWORK_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for_provider_error(code: AIErrorCode) -> int:
    """HTTP status for a provider error code; configuration and unknown errors are 500."""
    return PROVIDER_ERROR_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_error_response(
    error: str,
    code: str,
    status_code: int,
    detail: Optional[str] = None,
    provider: Optional[str] = None,
    retryable: bool = False,
) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "code": code,
            "provider": provider,
            "retryable": retryable,
            "detail": detail,
            "timestamp": _timestamp(),
        },
    )


def provider_error_response(exc: AIProviderError) -> JSONResponse:
    payload = exc.to_dict()
    return create_error_response(
        error=payload["error"],
        code=payload["code"],
        status_code=status_for_provider_error(exc.code),
        provider=payload["provider"],
        retryable=payload["retryable"],
    )


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(AIProviderError)
    async def provider_exception_handler(request: Request, exc: AIProviderError):
        logger.warning(
            f"Provider error on {request.url.path}: {exc.code.value} from {exc.provider_name} - {exc.message}"
        )
        return provider_error_response(exc)

    @app.exception_handler(ShelfScanException)
    async def shelfscan_exception_handler(request: Request, exc: ShelfScanException):
        logger.warning(f"ShelfScan error: {exc.code} - {exc.message}")
        return create_error_response(
            error=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            detail=exc.detail,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.url.path}: {type(exc).__name__}: {exc}\n"
            f"{traceback.format_exc()}"
        )
        return create_error_response(
            error="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred",
        )
