"""Exception hierarchy for the pipeline."""

from typing import Any, Dict, Optional


class NewsDigestError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(NewsDigestError):
    """Missing or invalid configuration. Fatal before any stage runs."""


class GenerationError(NewsDigestError):
    """A Generator call failed for a reason other than rate limiting."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider


class RateLimitedError(GenerationError):
    """The Generator rejected the call with a rate limit (HTTP 429)."""


class RenderError(NewsDigestError):
    """A page could not be rendered."""

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        super().__init__(message, kwargs)
        self.url = url


class InsufficientExtractionError(NewsDigestError):
    """Extracted text was empty or shorter than the minimum length."""


class EmptyAggregationError(NewsDigestError):
    """There was nothing to pack into a synthesis request."""


class ArtifactNotFoundError(NewsDigestError):
    """No artifact of the requested scope and kind exists."""


class InvalidRerunTargetError(NewsDigestError):
    """A rerun target directory has the wrong shape or is missing inputs."""
