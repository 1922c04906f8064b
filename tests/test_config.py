"""Tests for configuration loading and validation."""

import pytest
import yaml

from newsdigest.config import (
    Config,
    ConfigModel,
    SourceConfig,
    load_config,
    load_sources,
    save_config,
    save_sources,
)
from newsdigest.errors import ConfigurationError


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_load_config_applies_defaults(tmp_path):
    path = write_yaml(tmp_path / "config.yaml", {"generator": {"model": "gemini-1.5-pro"}})

    config = load_config(path)

    assert config.generator.model == "gemini-1.5-pro"
    assert config.generator.temperature == 0.6
    assert config.generator.extraction_temperature == 0.1
    assert config.gate.initial_backoff_ms == 1000
    assert config.gate.max_retries == 100
    assert config.pipeline.content_budget == 1_800_000
    assert config.pipeline.capture_delay_ms == 1500
    assert config.output_base_dir == "daily_news_data"


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.yaml")

    bad_yaml = tmp_path / "bad.yaml"
    bad_yaml.write_text("generator: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(bad_yaml)

    invalid = write_yaml(tmp_path / "invalid.yaml", {"pipeline": {"content_budget": 0}})
    with pytest.raises(ConfigurationError):
        load_config(invalid)


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "nested" / "config.yaml"
    model = ConfigModel(source_aliases={"www.nytimes.com": "nytimes"})

    save_config(model, path)

    assert load_config(path) == model


def test_validate_reports_every_problem(tmp_path, monkeypatch):
    monkeypatch.delenv("NEWSDIGEST_TEST_KEY", raising=False)
    monkeypatch.setattr("newsdigest.config.loader.playwright_installed", lambda: True)
    model = ConfigModel(
        generator={"provider": "gemini", "api_key_env": "NEWSDIGEST_TEST_KEY"},
        renderer={"kind": "browser", "extension_paths": [str(tmp_path / "no-extension")]},
    )
    config = Config(config_path=tmp_path / "config.yaml", model=model)

    problems = config.validate()

    assert len(problems) == 3
    assert any("NEWSDIGEST_TEST_KEY" in p for p in problems)
    assert any("Source registry" in p for p in problems)
    assert any("no-extension" in p for p in problems)
    with pytest.raises(ConfigurationError) as excinfo:
        config.ensure_valid()
    assert excinfo.value.details["problems"] == problems


def test_api_key_read_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("NEWSDIGEST_TEST_KEY", "secret")
    monkeypatch.setattr("newsdigest.config.loader.playwright_installed", lambda: True)
    save_sources([SourceConfig(url="https://www.nytimes.com/")], tmp_path / "sources.yaml")
    model = ConfigModel(generator={"api_key_env": "NEWSDIGEST_TEST_KEY"})
    config = Config(config_path=tmp_path / "config.yaml", model=model)

    assert config.get_generator_config()["api_key"] == "secret"
    assert config.validate() == []


def test_validate_reports_missing_playwright_for_browser_renderer(tmp_path, monkeypatch):
    monkeypatch.setattr("newsdigest.config.loader.playwright_installed", lambda: False)
    save_sources([SourceConfig(url="https://www.nytimes.com/")], tmp_path / "sources.yaml")
    browser = Config(config_path=tmp_path / "config.yaml", model=ConfigModel(generator={"provider": "mock"}))
    http = Config(
        config_path=tmp_path / "config.yaml",
        model=ConfigModel(generator={"provider": "mock"}, renderer={"kind": "http"}),
    )

    problems = browser.validate()

    assert len(problems) == 1
    assert "Playwright is not installed" in problems[0]
    assert http.validate() == []


def test_sources_path_relative_to_config(tmp_path):
    config = Config(config_path=tmp_path / "cfg" / "config.yaml", model=ConfigModel())

    assert config.sources_path == tmp_path / "cfg" / "sources.yaml"


def test_load_yaml_sources_keeps_order_and_skips_invalid(tmp_path):
    path = write_yaml(tmp_path / "sources.yaml", {
        "sources": [
            {"url": "https://www.wsj.com/"},
            {"url": "not-a-url"},
            {"url": "https://www.bbc.com/news", "name": "bbc", "enabled": False},
        ]
    })

    sources = load_sources(path)

    assert [s.url for s in sources] == ["https://www.wsj.com/", "https://www.bbc.com/news"]
    assert sources[1].name == "bbc"
    assert not sources[1].enabled


def test_load_text_sources(tmp_path):
    path = tmp_path / "urls.txt"
    path.write_text(
        "# morning sources\nhttps://www.nytimes.com/\n\nhttps://apnews.com/\n",
        encoding="utf-8",
    )

    assert [s.url for s in load_sources(path)] == ["https://www.nytimes.com/", "https://apnews.com/"]


def test_missing_sources_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_sources(tmp_path / "sources.yaml")
