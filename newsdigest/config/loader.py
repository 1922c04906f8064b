"""Configuration loader."""

import importlib.util
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import ConfigModel, SourceConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "NEWSDIGEST_CONFIG"


def default_config_path() -> Path:
    """Config path from the environment, else the per-user default."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".config" / "newsdigest" / "config.yaml"


def playwright_installed() -> bool:
    return importlib.util.find_spec("playwright") is not None


class Config:
    """Configuration manager."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        model: Optional[ConfigModel] = None,
    ) -> None:
        """Initialize config manager. A ready model skips loading from disk."""
        if config_path is None:
            config_path = default_config_path()
        self.config_path = config_path
        self._config: Optional[ConfigModel] = model

    @property
    def config(self) -> ConfigModel:
        """Get loaded config."""
        if self._config is None:
            self._config = load_config(self.config_path)
        return self._config

    @property
    def output_root(self) -> Path:
        """Root of the artifact tree. Relative paths resolve against the CWD."""
        return Path(self.config.output_base_dir).expanduser().resolve()

    @property
    def sources_path(self) -> Path:
        """Path of the source registry."""
        path = Path(self.config.sources_file).expanduser()
        if not path.is_absolute():
            path = self.config_path.parent / path
        return path

    def get_generator_config(self) -> Dict[str, Any]:
        """Get generator configuration dict with the API key resolved."""
        generator_config = self.config.generator.model_dump()

        if generator_config.get("api_key_env"):
            api_key = os.environ.get(generator_config["api_key_env"])
            if api_key:
                generator_config["api_key"] = api_key

        return generator_config

    def validate(self) -> List[str]:
        """Return a list of configuration problems; empty means usable."""
        problems = []

        generator_config = self.get_generator_config()
        if generator_config["provider"] != "mock" and not generator_config.get("api_key"):
            key_name = generator_config.get("api_key_env") or "generator.api_key"
            problems.append(f"{key_name} is not set (needed by the {generator_config['provider']} provider)")

        if not self.sources_path.exists():
            problems.append(f"Source registry not found: {self.sources_path}")

        if self.config.renderer.kind == "browser":
            if not playwright_installed():
                problems.append("Playwright is not installed (needed by the browser renderer): pip install 'newsdigest[browser]'")
            for extension_path in self.config.renderer.extension_paths:
                if not Path(extension_path).expanduser().is_dir():
                    problems.append(f"Extension path does not exist: {extension_path}")

        return problems

    def ensure_valid(self) -> None:
        """Raise ConfigurationError when validate() reports problems."""
        problems = self.validate()
        if problems:
            raise ConfigurationError(
                "Missing or invalid configuration",
                {"problems": problems},
            )


def load_config(config_path: Path) -> ConfigModel:
    """Load configuration from YAML file."""
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}

        return ConfigModel(**config_data)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {e}")
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def load_sources(sources_path: Path) -> List[SourceConfig]:
    """
    Load the source registry, preserving file order.

    YAML registries hold a ``sources`` list; ``.txt`` registries hold one URL
    per line with ``#`` comments.
    """
    if not sources_path.exists():
        raise FileNotFoundError(f"Sources file not found: {sources_path}")

    if sources_path.suffix == ".txt":
        sources = []
        for line in sources_path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                sources.append(SourceConfig(url=line))
            except ValidationError as e:
                logger.warning("Skipping invalid source %s: %s", line, e)
        return sources

    try:
        with open(sources_path, encoding="utf-8") as f:
            sources_data = yaml.safe_load(f)

        if sources_data is None or "sources" not in sources_data:
            return []

        sources = []
        for source_data in sources_data["sources"]:
            try:
                sources.append(SourceConfig(**source_data))
            except ValidationError as e:
                logger.warning("Skipping invalid source %s: %s", source_data.get("url", "unknown"), e)

        return sources
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in sources file: {e}")


def save_config(config: ConfigModel, config_path: Path) -> None:
    """Save configuration to YAML file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)


def save_sources(sources: List[SourceConfig], sources_path: Path) -> None:
    """Save sources to YAML file."""
    sources_path.parent.mkdir(parents=True, exist_ok=True)

    sources_data = {"sources": [s.model_dump(exclude_none=True) for s in sources]}

    with open(sources_path, "w", encoding="utf-8") as f:
        yaml.dump(sources_data, f, default_flow_style=False, sort_keys=False)
