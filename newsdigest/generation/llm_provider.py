"""LLM provider interface and implementations."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import httpx
import openai
from openai import OpenAI

from ..errors import ConfigurationError, GenerationError, RateLimitedError

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"


class LLMProvider(ABC):
    """Abstract base class for Generator backends."""

    name = "base"

    def __init__(self, model: str, temperature: float = 0.6) -> None:
        self.model = model
        self.temperature = temperature
        self.total_tokens = 0
        self.api_calls = 0

    @abstractmethod
    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Full prompt text
            model: Model override; the provider default when None
            temperature: Temperature override; the provider default when None

        Returns:
            Generated text

        Raises:
            RateLimitedError: The backend rejected the call with a rate limit
            GenerationError: Any other failure
        """

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get usage statistics."""
        return {
            "total_tokens": self.total_tokens,
            "api_calls": self.api_calls,
            "model": self.model,
            "provider": self.name,
        }


class GeminiProvider(LLMProvider):
    """Google Gemini over the REST generateContent endpoint."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash-latest",
        temperature: float = 0.6,
        base_url: Optional[str] = None,
        timeout: float = 300.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(model, temperature)
        self.api_key = api_key
        self.base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        model = model or self.model
        temperature = self.temperature if temperature is None else temperature
        url = f"{self.base_url}/v1beta/models/{model}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "responseMimeType": "text/plain",
            },
        }

        logger.debug("Asking Gemini (%s): %.50s", model, prompt)
        self.api_calls += 1
        try:
            response = self.client.post(url, params={"key": self.api_key}, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                raise RateLimitedError(f"Gemini rate limit (429) for {model}", provider=self.name)
            raise GenerationError(f"Gemini HTTP {status} for {model}", provider=self.name)
        except httpx.HTTPError as e:
            raise GenerationError(f"Gemini request failed: {e}", provider=self.name)

        try:
            data = response.json()
        except ValueError:
            raise GenerationError(
                f"Gemini returned a non-JSON body for {model}",
                provider=self.name,
                body=response.text[:200],
            )
        if not isinstance(data, dict):
            raise GenerationError(f"Gemini returned an unexpected payload for {model}", provider=self.name)

        usage = data.get("usageMetadata") or {}
        self.total_tokens += usage.get("totalTokenCount", 0)

        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            raise GenerationError(f"Gemini returned no candidates: {feedback}", provider=self.name)

        if candidates[0].get("finishReason") == "MAX_TOKENS":
            logger.warning("Gemini (%s) hit the output token limit", model)

        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.6,
        base_url: Optional[str] = None,
        timeout: float = 300.0,
    ) -> None:
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model name to use
            temperature: Default sampling temperature
            base_url: Custom base URL (for compatible endpoints)
            timeout: Request timeout in seconds
        """
        super().__init__(model, temperature)
        # The gate owns retries, so the SDK's own retry loop is disabled
        self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        model = model or self.model
        temperature = self.temperature if temperature is None else temperature

        logger.debug("Asking OpenAI (%s): %.50s", model, prompt)
        self.api_calls += 1
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
            )
        except openai.RateLimitError as e:
            raise RateLimitedError(f"OpenAI rate limit for {model}: {e}", provider=self.name)
        except openai.OpenAIError as e:
            raise GenerationError(f"OpenAI request failed for {model}: {e}", provider=self.name)

        if response.usage:
            self.total_tokens += response.usage.total_tokens

        if response.choices and response.choices[0].finish_reason == "length":
            logger.warning("OpenAI (%s) hit the output token limit", model)

        content = response.choices[0].message.content if response.choices else None
        return content or ""


MockResponse = Union[str, BaseException]


class MockLLMProvider(LLMProvider):
    """
    Scripted provider for tests and dry runs.

    ``responses`` are consumed in order; an exception instance is raised
    instead of returned. Once exhausted, ``handler`` (or a canned reply)
    answers.
    """

    name = "mock"

    def __init__(
        self,
        responses: Optional[Sequence[MockResponse]] = None,
        handler: Optional[Callable[[str], str]] = None,
        model: str = "mock",
    ) -> None:
        super().__init__(model, 0.0)
        self._responses: List[MockResponse] = list(responses or [])
        self._handler = handler
        self.calls: List[Tuple[str, Optional[str], Optional[float]]] = []

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        self.calls.append((prompt, model, temperature))
        self.api_calls += 1
        self.total_tokens += len(prompt) // 4

        if self._responses:
            response = self._responses.pop(0)
            if isinstance(response, BaseException):
                raise response
            return response

        if self._handler is not None:
            return self._handler(prompt)

        return f"Mock response ({len(prompt)} prompt characters)."


def create_provider(generator_config: Dict[str, Any]) -> LLMProvider:
    """Build the configured provider from a resolved generator config dict."""
    provider = generator_config.get("provider", "gemini")
    model = generator_config.get("model")
    temperature = generator_config.get("temperature", 0.6)

    if provider == "mock":
        return MockLLMProvider(model=model or "mock")

    api_key = generator_config.get("api_key")
    if not api_key:
        raise ConfigurationError(f"No API key configured for the {provider} provider")

    if provider == "gemini":
        return GeminiProvider(
            api_key=api_key,
            model=model or "gemini-1.5-flash-latest",
            temperature=temperature,
            base_url=generator_config.get("base_url"),
            timeout=generator_config.get("timeout", 300.0),
        )
    if provider == "openai":
        return OpenAIProvider(
            api_key=api_key,
            model=model or "gpt-4o-mini",
            temperature=temperature,
            base_url=generator_config.get("base_url"),
            timeout=generator_config.get("timeout", 300.0),
        )

    raise ConfigurationError(f"Unknown generator provider: {provider}")
