"""Tests for Generator providers."""

import httpx
import pytest

from newsdigest.errors import ConfigurationError, GenerationError, RateLimitedError
from newsdigest.generation import GeminiProvider, MockLLMProvider, clean_markdown, create_provider


def gemini_with(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GeminiProvider(api_key="test-key", client=client)


def test_gemini_returns_text_and_counts_tokens():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={
            "candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "world"}]}}],
            "usageMetadata": {"totalTokenCount": 42},
        })

    provider = gemini_with(handler)

    assert provider.generate("Say hello", model="gemini-1.5-pro") == "Hello world"
    assert "models/gemini-1.5-pro:generateContent" in seen["url"]
    assert "key=test-key" in seen["url"]
    assert provider.get_usage_stats()["total_tokens"] == 42
    assert provider.api_calls == 1


def test_gemini_429_is_rate_limited():
    provider = gemini_with(lambda request: httpx.Response(429, json={"error": {}}))

    with pytest.raises(RateLimitedError):
        provider.generate("prompt")


def test_gemini_other_status_is_generation_error():
    provider = gemini_with(lambda request: httpx.Response(500, json={"error": {}}))

    with pytest.raises(GenerationError) as excinfo:
        provider.generate("prompt")

    assert not isinstance(excinfo.value, RateLimitedError)


def test_gemini_without_candidates():
    provider = gemini_with(lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))

    with pytest.raises(GenerationError):
        provider.generate("prompt")


def test_gemini_non_json_body_is_generation_error():
    provider = gemini_with(lambda request: httpx.Response(200, text="<html>proxy</html>"))

    with pytest.raises(GenerationError) as excinfo:
        provider.generate("prompt")

    assert not isinstance(excinfo.value, RateLimitedError)
    assert excinfo.value.provider == "gemini"


def test_gemini_non_object_payload_is_generation_error():
    provider = gemini_with(lambda request: httpx.Response(200, json=["unexpected"]))

    with pytest.raises(GenerationError):
        provider.generate("prompt")


def test_create_provider():
    assert isinstance(create_provider({"provider": "mock"}), MockLLMProvider)
    assert isinstance(create_provider({"provider": "gemini", "api_key": "k"}), GeminiProvider)

    with pytest.raises(ConfigurationError):
        create_provider({"provider": "gemini", "api_key": None})


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("```markdown\n# Title\n\nBody\n```", "# Title\n\nBody"),
        ("```\n# Title\n```\n", "# Title"),
        ("# Already clean", "# Already clean"),
    ],
)
def test_clean_markdown(raw, expected):
    assert clean_markdown(raw) == expected
