"""
Unit tests for the vision provider layer.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest
from PIL import Image

from shelfscan.providers import (
    AIErrorCode,
    AIProviderError,
    AnthropicVisionProvider,
    ImageAnalysisOptions,
    OpenAIVisionProvider,
    ProviderConfig,
    ReadabilityStatus,
)
from shelfscan.providers import base
from shelfscan.providers.image_processor import process_image
from tests.fakes import FakeVisionProvider, to_data_uri

pytestmark = pytest.mark.asyncio


OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"


def status_response(url: str, status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", url))


# =============================================================================
# Template method
# =============================================================================

class TestBaseVisionProvider:
    """Tests for the shared analysis flow."""

    async def test_analyze_shelf(self, fake_provider, shelf_image_uri):
        result = await fake_provider.analyze_shelf(shelf_image_uri)

        assert result.total_detected == 4
        assert [book.readability_status for book in result.books] == [
            ReadabilityStatus.CLEAR,
            ReadabilityStatus.PARTIAL,
            ReadabilityStatus.UNREADABLE,
            ReadabilityStatus.CLEAR,
        ]
        assert result.books[3].confidence == 0.88

    async def test_image_is_preprocessed(self, fake_provider, shelf_image_uri):
        result = await fake_provider.analyze_shelf(shelf_image_uri)

        sent = fake_provider.calls[0]
        assert sent.format == "jpeg"
        assert result.image_metadata.width == 640
        assert result.image_metadata.height == 480
        assert result.image_metadata.format == "jpeg"

    async def test_analyze_single_book(self, fake_provider, cover_image_uri):
        result = await fake_provider.analyze_single_book(cover_image_uri)

        assert result.title == "Dune"
        assert result.year == 1965

    async def test_missing_api_key(self):
        with pytest.raises(AIProviderError) as exc_info:
            FakeVisionProvider(ProviderConfig(api_key="", model="test"))

        assert exc_info.value.code == AIErrorCode.INVALID_API_KEY

    async def test_invalid_image(self, fake_provider):
        with pytest.raises(AIProviderError) as exc_info:
            await fake_provider.analyze_shelf("not-a-data-uri")

        assert exc_info.value.code == AIErrorCode.INVALID_IMAGE_FORMAT
        assert not exc_info.value.retryable
        assert fake_provider.calls == []

    async def test_oversized_image(self, fake_provider, shelf_image_uri):
        options = ImageAnalysisOptions(max_image_size_mb=0.0001)

        with pytest.raises(AIProviderError) as exc_info:
            await fake_provider.analyze_shelf(shelf_image_uri, options)

        assert exc_info.value.code == AIErrorCode.INVALID_IMAGE_FORMAT
        assert "exceeds limit" in exc_info.value.message

    async def test_size_limit_capped_by_capabilities(self, provider_config):
        provider = FakeVisionProvider(provider_config, max_image_size_mb=2)

        assert provider.max_image_size_mb(ImageAnalysisOptions(max_image_size_mb=50)) == 2
        assert provider.max_image_size_mb(ImageAnalysisOptions()) == 2

    async def test_undecodable_image(self, fake_provider):
        with pytest.raises(AIProviderError) as exc_info:
            await fake_provider.analyze_shelf("data:image/png;base64,bm90IGFuIGltYWdl")

        assert exc_info.value.code == AIErrorCode.INVALID_IMAGE_FORMAT

    async def test_decompression_bomb_rejected(self, fake_provider):
        # compresses to a few KB but exceeds Pillow's pixel limit
        uri = to_data_uri(Image.new("1", (15000, 13000)))

        with pytest.raises(AIProviderError) as exc_info:
            await fake_provider.analyze_shelf(uri)

        assert exc_info.value.code == AIErrorCode.INVALID_IMAGE_FORMAT
        assert not exc_info.value.retryable
        assert fake_provider.calls == []

    async def test_zero_compression_quality_is_honored(self, fake_provider, shelf_image_uri):
        with patch.object(base, "process_image", wraps=process_image) as spy:
            await fake_provider.analyze_shelf(shelf_image_uri, ImageAnalysisOptions(compression_quality=0.0))

        assert spy.call_args.kwargs["quality"] == 0.0

    async def test_timeout_cancels_call(self, provider_config, shelf_image_uri):
        provider = FakeVisionProvider(provider_config, delay=5)

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri, ImageAnalysisOptions(timeout=0.05))

        assert exc_info.value.code == AIErrorCode.NETWORK_ERROR
        assert exc_info.value.retryable
        assert provider.cancelled

    async def test_missing_books_key(self, provider_config, shelf_image_uri):
        provider = FakeVisionProvider(provider_config, shelf_payload={"items": []})

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == AIErrorCode.PARSING_ERROR
        assert not exc_info.value.retryable

    @pytest.mark.parametrize(
        "error, code, retryable",
        [
            (RuntimeError("429: rate limit reached"), AIErrorCode.RATE_LIMIT_EXCEEDED, True),
            (RuntimeError("upstream timed out"), AIErrorCode.NETWORK_ERROR, True),
            (RuntimeError("boom"), AIErrorCode.UNKNOWN_ERROR, False),
        ],
    )
    async def test_error_mapping_by_message(
        self, provider_config, shelf_image_uri, error, code, retryable
    ):
        provider = FakeVisionProvider(provider_config, error=error)

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == code
        assert exc_info.value.retryable is retryable
        assert exc_info.value.cause is error
        assert exc_info.value.provider_name == "Fake"

    async def test_unknown_error_message(self, provider_config, shelf_image_uri):
        provider = FakeVisionProvider(provider_config, error=RuntimeError("boom"))

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.message == "Failed to analyze shelf"

    async def test_provider_error_passes_through(self, provider_config, shelf_image_uri):
        original = AIProviderError(AIErrorCode.MODEL_UNAVAILABLE, "down", "Fake", retryable=True)
        provider = FakeVisionProvider(provider_config, error=original)

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value is original

    async def test_error_to_dict(self):
        error = AIProviderError(AIErrorCode.RATE_LIMIT_EXCEEDED, "slow down", "OpenAI", retryable=True)

        assert error.to_dict() == {
            "error": "slow down",
            "code": "RATE_LIMIT_EXCEEDED",
            "provider": "OpenAI",
            "retryable": True,
        }


# =============================================================================
# OpenAI adapter
# =============================================================================

def openai_response(content=None, refusal=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, refusal=refusal)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


class TestOpenAIVisionProvider:
    """Tests for the OpenAI adapter with a mocked SDK client."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock()
        return client

    @pytest.fixture
    def provider(self, client):
        config = ProviderConfig(api_key="sk-test", model="gpt-4o", max_books_per_shelf=2)
        return OpenAIVisionProvider(config, client=client)

    async def test_request_shape(self, provider, client, shelf_image_uri):
        client.chat.completions.create.return_value = openai_response('{"books": []}')

        await provider.analyze_shelf(shelf_image_uri)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}
        content = kwargs["messages"][0]["content"]
        assert content[0]["type"] == "text"
        assert "[unreadable]" in content[0]["text"]
        assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    async def test_shelf_truncated_to_limit(self, provider, client, shelf_image_uri):
        client.chat.completions.create.return_value = openai_response(
            '{"books": [{"title": "A"}, {"title": "B"}, {"title": "C"}]}'
        )

        result = await provider.analyze_shelf(shelf_image_uri)

        assert [book.title for book in result.books] == ["A", "B"]

    async def test_refusal(self, provider, client, shelf_image_uri):
        client.chat.completions.create.return_value = openai_response(refusal="I can't help with that")

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == AIErrorCode.MODEL_UNAVAILABLE
        assert exc_info.value.retryable

    async def test_empty_content(self, provider, client, shelf_image_uri):
        client.chat.completions.create.return_value = openai_response(finish_reason="length")

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == AIErrorCode.PARSING_ERROR
        assert "length" in exc_info.value.message

    async def test_invalid_json(self, provider, client, shelf_image_uri):
        client.chat.completions.create.return_value = openai_response("not json at all")

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == AIErrorCode.PARSING_ERROR

    @pytest.mark.parametrize(
        "make_error, code, retryable",
        [
            (
                lambda: openai.RateLimitError(
                    "Rate limit", response=status_response(OPENAI_URL, 429), body=None
                ),
                AIErrorCode.RATE_LIMIT_EXCEEDED,
                True,
            ),
            (
                lambda: openai.AuthenticationError(
                    "Bad key", response=status_response(OPENAI_URL, 401), body=None
                ),
                AIErrorCode.INVALID_API_KEY,
                False,
            ),
            (
                lambda: openai.InternalServerError(
                    "Server error", response=status_response(OPENAI_URL, 503), body=None
                ),
                AIErrorCode.MODEL_UNAVAILABLE,
                True,
            ),
            (
                lambda: openai.APITimeoutError(request=httpx.Request("POST", OPENAI_URL)),
                AIErrorCode.NETWORK_ERROR,
                True,
            ),
            (
                lambda: openai.APIConnectionError(request=httpx.Request("POST", OPENAI_URL)),
                AIErrorCode.NETWORK_ERROR,
                True,
            ),
        ],
    )
    async def test_sdk_error_mapping(
        self, provider, client, shelf_image_uri, make_error, code, retryable
    ):
        client.chat.completions.create.side_effect = make_error()

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == code
        assert exc_info.value.retryable is retryable
        assert exc_info.value.provider_name == "OpenAI"

    async def test_capabilities(self, provider):
        capabilities = provider.get_capabilities()

        assert capabilities.max_image_size_mb == 20
        assert capabilities.supports_structured_output
        assert capabilities.rate_limit.requests_per_minute == 500


# =============================================================================
# Anthropic adapter
# =============================================================================

def anthropic_response(text=None, stop_reason="end_turn"):
    content = [SimpleNamespace(type="text", text=text)] if text is not None else []
    return SimpleNamespace(content=content, stop_reason=stop_reason)


class TestAnthropicVisionProvider:
    """Tests for the Anthropic adapter with a mocked SDK client."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.messages.create = AsyncMock()
        return client

    @pytest.fixture
    def provider(self, client):
        config = ProviderConfig(api_key="sk-ant-test", model="claude-3-5-sonnet-20241022")
        return AnthropicVisionProvider(config, client=client)

    async def test_fenced_json(self, provider, client, shelf_image_uri):
        client.messages.create.return_value = anthropic_response(
            '```json\n{"books": [{"title": "[uncertain] Emma", "confidence": 0.4}]}\n```'
        )

        result = await provider.analyze_shelf(shelf_image_uri)

        assert result.books[0].title == "Emma"
        assert result.books[0].readability_status == ReadabilityStatus.UNCERTAIN

    async def test_request_shape(self, provider, client, cover_image_uri):
        client.messages.create.return_value = anthropic_response('{"title": "Emma"}')

        result = await provider.analyze_single_book(cover_image_uri)

        assert result.title == "Emma"
        kwargs = client.messages.create.call_args.kwargs
        image_block, text_block = kwargs["messages"][0]["content"]
        assert image_block["source"]["type"] == "base64"
        assert image_block["source"]["media_type"] == "image/jpeg"
        assert not image_block["source"]["data"].startswith("data:")
        assert "JSON" in text_block["text"]
        assert kwargs["max_tokens"] == 1000

    async def test_refusal(self, provider, client, shelf_image_uri):
        client.messages.create.return_value = anthropic_response(stop_reason="refusal")

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == AIErrorCode.MODEL_UNAVAILABLE
        assert exc_info.value.retryable

    async def test_empty_text(self, provider, client, shelf_image_uri):
        client.messages.create.return_value = anthropic_response()

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == AIErrorCode.PARSING_ERROR

    async def test_overloaded(self, provider, client, shelf_image_uri):
        client.messages.create.side_effect = anthropic.APIStatusError(
            "Overloaded", response=status_response(ANTHROPIC_URL, 529), body=None
        )

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == AIErrorCode.MODEL_UNAVAILABLE
        assert exc_info.value.retryable

    async def test_rate_limit(self, provider, client, shelf_image_uri):
        client.messages.create.side_effect = anthropic.RateLimitError(
            "Rate limit", response=status_response(ANTHROPIC_URL, 429), body=None
        )

        with pytest.raises(AIProviderError) as exc_info:
            await provider.analyze_shelf(shelf_image_uri)

        assert exc_info.value.code == AIErrorCode.RATE_LIMIT_EXCEEDED

    async def test_capabilities(self, provider):
        capabilities = provider.get_capabilities()

        assert capabilities.max_image_size_mb == 5
        assert not capabilities.supports_structured_output
