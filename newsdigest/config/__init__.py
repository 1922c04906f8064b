"""Configuration management."""

from .loader import (
    Config,
    default_config_path,
    load_config,
    load_sources,
    save_config,
    save_sources,
)
from .models import (
    ConfigModel,
    GateConfig,
    GeneratorConfig,
    PipelineConfig,
    RendererConfig,
    SourceConfig,
)

__all__ = [
    "Config",
    "ConfigModel",
    "GateConfig",
    "GeneratorConfig",
    "PipelineConfig",
    "RendererConfig",
    "SourceConfig",
    "default_config_path",
    "load_config",
    "load_sources",
    "save_config",
    "save_sources",
]
