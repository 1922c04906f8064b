"""Generator providers, prompts and the rate-limited call gate."""

from .gate import AttemptOutcome, CallGate, GateEvent, iter_attempts
from .llm_provider import (
    GeminiProvider,
    LLMProvider,
    MockLLMProvider,
    OpenAIProvider,
    create_provider,
)
from .prompts import clean_markdown, extraction_prompt, synthesis_prompt, url_discovery_prompt

__all__ = [
    "AttemptOutcome",
    "CallGate",
    "GateEvent",
    "GeminiProvider",
    "LLMProvider",
    "MockLLMProvider",
    "OpenAIProvider",
    "clean_markdown",
    "create_provider",
    "extraction_prompt",
    "iter_attempts",
    "synthesis_prompt",
    "url_discovery_prompt",
]
