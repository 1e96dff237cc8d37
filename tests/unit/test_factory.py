"""
Unit tests for the provider registry and settings.
"""

import pytest

from shelfscan.config import Settings
from shelfscan.providers import (
    AIErrorCode,
    AIProviderError,
    AnthropicVisionProvider,
    OpenAIVisionProvider,
    ProviderRegistry,
    ProviderType,
    clear_cache,
    get_ai_provider,
)
from shelfscan.providers.types import ProviderConfig
from tests.fakes import FakeVisionProvider, get_test_settings


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_default_from_settings(self, settings):
        provider = get_ai_provider(settings=settings)

        assert isinstance(provider, OpenAIVisionProvider)
        assert provider.config.model == "gpt-4o"

    def test_explicit_type(self, settings):
        provider = get_ai_provider(ProviderType.ANTHROPIC, settings=settings)

        assert isinstance(provider, AnthropicVisionProvider)

    def test_switch_by_configuration(self):
        provider = get_ai_provider(settings=get_test_settings(ai_provider="anthropic"))

        assert isinstance(provider, AnthropicVisionProvider)

    def test_instance_is_cached(self, settings):
        first = get_ai_provider("openai", settings=settings)
        second = get_ai_provider("OPENAI", settings=settings)

        assert first is second

    def test_clear_cache(self, settings):
        first = get_ai_provider("openai", settings=settings)
        clear_cache()

        assert get_ai_provider("openai", settings=settings) is not first

    def test_missing_key_fails_fast(self):
        settings = get_test_settings(openai_api_key=None)

        with pytest.raises(AIProviderError) as exc_info:
            get_ai_provider("openai", settings=settings)

        assert exc_info.value.code == AIErrorCode.INVALID_API_KEY
        assert "openai" in exc_info.value.message

    def test_missing_key_checked_even_when_cached(self, settings):
        get_ai_provider("openai", settings=settings)

        with pytest.raises(AIProviderError):
            get_ai_provider("openai", settings=get_test_settings(openai_api_key=""))

    def test_unknown_type(self, settings):
        with pytest.raises(AIProviderError) as exc_info:
            get_ai_provider("gemini", settings=settings)

        assert exc_info.value.code == AIErrorCode.UNKNOWN_ERROR

    def test_register_adapter(self, settings):
        def fake_config(settings: Settings) -> ProviderConfig:
            return ProviderConfig(api_key="fake-key", model="fake-model")

        ProviderRegistry.register("fake", FakeVisionProvider, fake_config)
        try:
            provider = get_ai_provider("fake", settings=settings)
            assert isinstance(provider, FakeVisionProvider)
            assert provider.config.model == "fake-model"
        finally:
            ProviderRegistry._adapters.pop("fake", None)

    def test_settings_flow_into_adapter(self):
        settings = get_test_settings(max_image_width=1024, max_image_size_mb=3.0, max_books_per_shelf=10)

        provider = get_ai_provider("openai", settings=settings)

        assert provider.max_image_width == 1024
        assert provider.default_max_image_size_mb == 3.0
        assert provider.config.max_books_per_shelf == 10


class TestSettings:
    """Tests for environment-backed settings."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("AI_PROVIDER", "Anthropic")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.setenv("MAX_IMAGE_SIZE_MB", "2.5")
        monkeypatch.setenv("ENRICHMENT_CONCURRENCY", "3")
        monkeypatch.setenv("DEBUG", "false")

        settings = Settings.from_env()

        assert settings.ai_provider == "anthropic"
        assert settings.anthropic_api_key == "sk-ant"
        assert settings.max_image_size_mb == 2.5
        assert settings.enrichment_concurrency == 3
        assert settings.debug is False

    def test_defaults(self, monkeypatch):
        for name in ("AI_PROVIDER", "MIN_CONFIDENCE_THRESHOLD", "AI_REQUEST_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.ai_provider == "openai"
        assert settings.min_confidence_threshold == 0.7
        assert settings.request_timeout_seconds == 60.0
