"""
Provider Factory

Resolves configuration to a vision backend adapter and caches one instance
per backend type for the life of the process. Cached adapters are shared by
concurrent requests, so they must stay stateless beyond their configuration.
"""

import threading
from enum import Enum
from typing import Callable, Optional, Union

from loguru import logger

from shelfscan.config import Settings, get_settings
from shelfscan.providers.anthropic_provider import AnthropicVisionProvider
from shelfscan.providers.base import BaseVisionProvider
from shelfscan.providers.errors import AIErrorCode, AIProviderError
from shelfscan.providers.openai_provider import OpenAIVisionProvider
from shelfscan.providers.types import ProviderConfig


class ProviderType(str, Enum):
    """Supported vision backends."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


ConfigFactory = Callable[[Settings], ProviderConfig]


def openai_config(settings: Settings) -> ProviderConfig:
    return ProviderConfig(
        api_key=settings.openai_api_key or "",
        model=settings.openai_model,
        organization=settings.openai_organization,
        timeout=settings.request_timeout_seconds,
        max_books_per_shelf=settings.max_books_per_shelf,
    )


def anthropic_config(settings: Settings) -> ProviderConfig:
    return ProviderConfig(
        api_key=settings.anthropic_api_key or "",
        model=settings.anthropic_model,
        timeout=settings.request_timeout_seconds,
        max_books_per_shelf=settings.max_books_per_shelf,
    )


class ProviderRegistry:
    """
    Process-wide registry of vision backends.

    Usage:
        provider = ProviderRegistry.get_provider()            # default from settings
        provider = ProviderRegistry.get_provider("anthropic")
        ProviderRegistry.clear_cache()                        # test isolation
    """

    _adapters: dict[str, tuple[type[BaseVisionProvider], ConfigFactory]] = {
        ProviderType.OPENAI.value: (OpenAIVisionProvider, openai_config),
        ProviderType.ANTHROPIC.value: (AnthropicVisionProvider, anthropic_config),
    }
    _instances: dict[str, BaseVisionProvider] = {}
    _lock = threading.Lock()

    @classmethod
    def register(
        cls,
        provider_type: str,
        adapter_cls: type[BaseVisionProvider],
        config_factory: ConfigFactory,
    ) -> None:
        """Register an additional backend adapter."""
        cls._adapters[provider_type.lower()] = (adapter_cls, config_factory)
        logger.info(f"Registered vision provider '{provider_type}'")

    @classmethod
    def get_provider(
        cls,
        provider_type: Optional[Union[str, ProviderType]] = None,
        settings: Optional[Settings] = None,
    ) -> BaseVisionProvider:
        """
        Get or create the adapter for a backend type.

        Args:
            provider_type: Backend type; defaults to settings.ai_provider
            settings: Settings to read credentials from

        Returns:
            Cached adapter instance

        Raises:
            AIProviderError: INVALID_API_KEY when credentials are missing,
                UNKNOWN_ERROR for unregistered types
        """
        settings = settings or get_settings()
        key = getattr(provider_type, "value", provider_type) or settings.ai_provider
        key = key.lower()

        if key not in cls._adapters:
            raise AIProviderError(
                AIErrorCode.UNKNOWN_ERROR,
                f"Unknown provider type: {key}",
                key,
            )

        adapter_cls, config_factory = cls._adapters[key]
        config = config_factory(settings)

        # Fail fast on every call, even when an instance is cached
        if not config.api_key:
            raise AIProviderError(
                AIErrorCode.INVALID_API_KEY,
                f'API key missing for provider "{key}"',
                key,
            )

        with cls._lock:
            provider = cls._instances.get(key)
            if provider is None:
                provider = adapter_cls(
                    config,
                    max_image_width=settings.max_image_width,
                    default_max_image_size_mb=settings.max_image_size_mb,
                )
                cls._instances[key] = provider
                logger.info(f"Initialized vision provider {provider.name} ({config.model})")

        return provider

    @classmethod
    def clear_cache(cls) -> None:
        """Drop cached adapter instances."""
        with cls._lock:
            cls._instances.clear()


def get_ai_provider(
    provider_type: Optional[Union[str, ProviderType]] = None,
    settings: Optional[Settings] = None,
) -> BaseVisionProvider:
    """Shortcut for ProviderRegistry.get_provider."""
    return ProviderRegistry.get_provider(provider_type, settings)


def clear_cache() -> None:
    ProviderRegistry.clear_cache()
