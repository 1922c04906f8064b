"""Configuration models."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class GeneratorConfig(BaseModel):
    """Generator (LLM provider) configuration."""

    provider: Literal["gemini", "openai", "mock"] = Field("gemini", description="LLM provider")
    model: str = Field("gemini-1.5-flash-latest", description="Default model name")
    temperature: float = Field(0.6, description="Temperature for synthesis", ge=0.0, le=2.0)
    extraction_temperature: float = Field(
        0.1, description="Temperature for URL discovery and text extraction", ge=0.0, le=2.0
    )
    api_key_env: Optional[str] = Field("GEMINI_API_KEY", description="Environment variable for API key")
    api_key: Optional[str] = Field(None, description="API key (prefer api_key_env)")
    base_url: Optional[str] = Field(None, description="Base URL override for the API")
    timeout: float = Field(300.0, description="Request timeout in seconds", gt=0)


class GateConfig(BaseModel):
    """Retry policy for rate-limited Generator calls."""

    initial_backoff_ms: int = Field(1000, description="Backoff unit in milliseconds", ge=0)
    max_retries: int = Field(100, description="Retries after a rate-limit failure", ge=0)


class RendererConfig(BaseModel):
    """Page renderer configuration."""

    kind: Literal["browser", "http"] = Field("browser", description="Renderer implementation")
    extension_paths: List[str] = Field(
        default_factory=list,
        description="Unpacked browser extensions to load",
    )
    headless: bool = Field(False, description="Run the browser headless (extensions need headful)")
    timeout_s: float = Field(90.0, description="Navigation timeout in seconds", gt=0)
    settle_ms: int = Field(10000, description="Wait after navigation before capturing", ge=0)
    max_scrolls: int = Field(100, description="Scroll steps used to trigger lazy content", ge=0)
    user_agent: str = Field(DEFAULT_USER_AGENT, description="User agent header")


class PipelineConfig(BaseModel):
    """Stage behaviour."""

    content_budget: int = Field(
        1_800_000, description="Maximum characters packed into one Generator call", ge=1
    )
    capture_delay_ms: int = Field(1500, description="Delay between article renders", ge=0)
    extraction_delay_ms: int = Field(10000, description="Delay between text extractions", ge=0)
    min_extracted_chars: int = Field(
        200, description="Extractions shorter than this are rejected", ge=0
    )
    strip_query: bool = Field(False, description="Drop query strings from discovered URLs")
    strip_fragment: bool = Field(True, description="Drop fragments from discovered URLs")
    analysis_type: Literal["digest", "essay", "both"] = Field(
        "both", description="Documents generated by a full run"
    )


class ConfigModel(BaseModel):
    """Main configuration model."""

    output_base_dir: str = Field("daily_news_data", description="Root directory for artifacts")
    sources_file: str = Field(
        "sources.yaml", description="Source registry, relative to the config directory"
    )
    source_aliases: Dict[str, str] = Field(
        default_factory=dict,
        description="Hostname to source-name overrides",
    )
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    renderer: RendererConfig = Field(default_factory=RendererConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)


class SourceConfig(BaseModel):
    """One entry of the source registry."""

    url: str = Field(..., description="Source page URL")
    name: Optional[str] = Field(None, description="Source name override")
    enabled: bool = Field(True, description="Whether source is enabled")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Source URL must be absolute http(s): {v}")
        return v
