"""
API middleware components.

Provides cross-cutting concerns for the API:
- Error handling
- Request/response logging
"""

from .error_handler import (
    ShelfScanException,
    NotFoundError,
    MissingUserError,
    setup_exception_handlers,
    create_error_response,
    provider_error_response,
    status_for_provider_error,
)

from .logging import (
    LoggingConfig,
    RequestLoggingMiddleware,
    setup_logging,
    get_request_id,
)


__all__ = [
    # Error handling
    "ShelfScanException",
    "NotFoundError",
    "MissingUserError",
    "setup_exception_handlers",
    "create_error_response",
    "provider_error_response",
    "status_for_provider_error",
    # Logging
    "LoggingConfig",
    "RequestLoggingMiddleware",
    "setup_logging",
    "get_request_id",
]
