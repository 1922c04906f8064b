"""Shared fakes and fixtures."""

from itertools import count
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from newsdigest.config import PipelineConfig
from newsdigest.errors import RenderError
from newsdigest.generation import CallGate, MockLLMProvider
from newsdigest.ingestion import Renderer
from newsdigest.pipeline import StageContext
from newsdigest.storage import ArtifactStore

LONG_PARAGRAPH = (
    "Officials confirmed on Tuesday that the measure passed after a lengthy debate, "
    "with supporters citing its budget impact and critics warning about its scope. "
)

URL_DISCOVERY_MARKER = "Analyze the HTML source below"
EXTRACTION_MARKER = "Extract the complete, verbatim body text"


class FakeRenderer(Renderer):
    """Serves canned markup; unknown URLs fail like an unreachable page."""

    def __init__(self, pages: Dict[str, str]) -> None:
        self.pages = pages
        self.calls: List[str] = []

    def render(self, url: str, extension_paths: Optional[Sequence[str]] = None) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise RenderError("Page not found (404)", url=url, status=404)
        return self.pages[url]


class StepClock:
    """Millisecond clock that advances by one on every reading."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self._counter = count(start)

    def __call__(self) -> int:
        return next(self._counter)


def article_page(title: str, body: str) -> str:
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><h1>{title}</h1><article><p>{body}</p></article></body></html>"
    )


def source_page(links: Sequence[str]) -> str:
    anchors = "".join(f'<li><a href="{link}">Story</a></li>' for link in links)
    return f"<html><head><title>Front page</title></head><body><ul>{anchors}</ul></body></html>"


def news_handler(urls_by_source: Dict[str, Sequence[str]]):
    """
    Generator stand-in answering by prompt type.

    Discovery returns the URLs registered for the source named in the prompt.
    Extraction returns a long body unless the page carries SHORT_BODY.
    Synthesis returns a fenced markdown document.
    """

    def handler(prompt: str) -> str:
        if prompt.startswith(URL_DISCOVERY_MARKER):
            for source_url, urls in urls_by_source.items():
                if f"taken from {source_url}." in prompt:
                    return "Here are the links:\n" + "\n".join(f"- {u}" for u in urls)
            return ""
        if prompt.startswith(EXTRACTION_MARKER):
            if "SHORT_BODY" in prompt:
                return "Too short."
            return LONG_PARAGRAPH * 4
        return "```markdown\n# Analysis\n\nGenerated text.\n```"

    return handler


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def output_root(tmp_path: Path) -> Path:
    root = tmp_path / "daily_news_data"
    root.mkdir()
    return root


@pytest.fixture
def store(output_root: Path) -> ArtifactStore:
    return ArtifactStore(output_root, clock=StepClock())


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        capture_delay_ms=1500,
        extraction_delay_ms=10000,
        min_extracted_chars=50,
    )


@pytest.fixture
def make_context(store, fake_sleep, pipeline_config):
    def _make(generator: MockLLMProvider, renderer: Optional[Renderer] = None) -> StageContext:
        return StageContext(
            store=store,
            gate=CallGate(initial_backoff_ms=1000, max_retries=3, sleep=fake_sleep),
            generator=generator,
            renderer=renderer,
            pipeline_config=pipeline_config,
            sleep=fake_sleep,
        )

    return _make
