"""
Provider error taxonomy.

AIProviderError is the only error type that leaves the analysis subsystem.
"""

from enum import Enum
from typing import Optional


class AIErrorCode(str, Enum):
    INVALID_API_KEY = "INVALID_API_KEY"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INVALID_IMAGE_FORMAT = "INVALID_IMAGE_FORMAT"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    PARSING_ERROR = "PARSING_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AIProviderError(Exception):
    """
    Failure raised by a vision backend adapter.

    `retryable` is advisory metadata for the caller; nothing in this
    package retries automatically.
    """

    def __init__(
        self,
        code: AIErrorCode,
        message: str,
        provider_name: str,
        retryable: bool = False,
        cause: Optional[BaseException] = None,
    ):
        self.code = code
        self.message = message
        self.provider_name = provider_name
        self.retryable = retryable
        self.cause = cause
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"AIProviderError(code={self.code.value}, provider={self.provider_name!r}, "
            f"retryable={self.retryable}, message={self.message!r})"
        )

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code.value,
            "provider": self.provider_name,
            "retryable": self.retryable,
        }


class MalformedResponseError(ValueError):
    """Backend output does not follow the JSON response contract."""
