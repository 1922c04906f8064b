"""Stage runners, one per pipeline phase.

Runners only meet through artifacts: each reads its inputs from the
ArtifactStore, calls the Renderer or the Generator (through the CallGate) and
writes its outputs back. A failed unit of work is recorded and skipped; it
never aborts the stage.
"""

import logging
import time
from functools import partial
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..config import GeneratorConfig, PipelineConfig
from ..errors import EmptyAggregationError, GenerationError, InsufficientExtractionError
from ..generation import CallGate, LLMProvider
from ..generation.prompts import (
    clean_markdown,
    extraction_prompt,
    synthesis_prompt,
    url_discovery_prompt,
)
from ..ingestion import Renderer, domain_of, model_suffix, parse_candidate_urls, url_to_basename
from ..ingestion.metadata import page_title
from ..models import (
    Article,
    CaptureStatus,
    ExtractStatus,
    Kind,
    Scope,
    SourceRun,
)
from ..storage import ArtifactStore
from .packer import DOCUMENT_PREAMBLE, PackUnit, pack

logger = logging.getLogger(__name__)

SOURCE_PAGE_NAME = "source_page.html"


class StageOutcome(BaseModel):
    """What one stage invocation produced for one target."""

    stage: str
    target: str
    succeeded: int = 0
    failed: int = 0
    urls: List[str] = Field(default_factory=list)
    articles: List[Article] = Field(default_factory=list)
    documents: List[Path] = Field(default_factory=list)
    packed: Dict[str, int] = Field(default_factory=dict, description="Fully packed units per kind")
    errors: List[str] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.succeeded == 0

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def stats(self) -> Dict:
        stats = {"succeeded": self.succeeded, "failed": self.failed}
        if self.packed:
            stats["packed"] = dict(self.packed)
        return stats


class StageContext:
    """Collaborators and settings shared by every stage runner."""

    def __init__(
        self,
        store: ArtifactStore,
        gate: CallGate,
        generator: LLMProvider,
        renderer: Optional[Renderer] = None,
        pipeline_config: Optional[PipelineConfig] = None,
        generator_config: Optional[GeneratorConfig] = None,
        extension_paths: Sequence[str] = (),
        source_aliases: Optional[Dict[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.gate = gate
        self.generator = generator
        self.renderer = renderer
        self.pipeline = pipeline_config or PipelineConfig()
        self.generator_config = generator_config or GeneratorConfig()
        self.extension_paths = list(extension_paths)
        self.source_aliases = source_aliases or {}
        self.sleep = sleep

    def pause(self, delay_ms: int, reason: str) -> None:
        if delay_ms > 0:
            logger.debug("Waiting %.1fs before next %s", delay_ms / 1000, reason)
            self.sleep(delay_ms / 1000)

    def require_renderer(self) -> Renderer:
        if self.renderer is None:
            raise RuntimeError("This stage needs a renderer but none was configured")
        return self.renderer


class UrlDiscoveryStage:
    """Render the source page and ask the Generator for its article URLs."""

    name = "discover"

    def __init__(self, context: StageContext) -> None:
        self.context = context

    def run(self, source_run: SourceRun) -> StageOutcome:
        ctx = self.context
        outcome = StageOutcome(stage=self.name, target=source_run.name)
        source_run.ensure_dirs()

        page_path = source_run.source_dir / SOURCE_PAGE_NAME
        renderer = ctx.require_renderer()
        if not renderer.render_and_persist(source_run.url, page_path, ctx.extension_paths):
            outcome.record_failure(f"Source page could not be rendered: {source_run.url}")
            logger.error("[%s] %s", source_run.name, outcome.errors[-1])
            return outcome

        markup = page_path.read_text(encoding="utf-8")
        prompt = url_discovery_prompt(markup, source_run.url, domain_of(source_run.url))
        try:
            response = ctx.gate.call(
                partial(
                    ctx.generator.generate,
                    prompt,
                    temperature=ctx.generator_config.extraction_temperature,
                ),
                label=f"discover {source_run.name}",
            )
        except GenerationError as e:
            outcome.record_failure(f"URL discovery failed for {source_run.url}: {e}")
            logger.error("[%s] %s", source_run.name, outcome.errors[-1])
            return outcome

        urls = parse_candidate_urls(
            response,
            strip_query=ctx.pipeline.strip_query,
            strip_fragment=ctx.pipeline.strip_fragment,
        )
        outcome.urls = urls
        outcome.articles = build_articles(urls)
        outcome.succeeded = len(urls)
        ctx.store.save_manifest(source_run.source_dir, outcome.articles)

        logger.info("[%s] %d candidate article URLs", source_run.name, len(urls))
        for url in urls:
            logger.debug("  %s", url)
        return outcome


def build_articles(urls: Sequence[str]) -> List[Article]:
    """Article records in discovery order with unique base names."""
    articles = []
    used = set()
    for index, url in enumerate(urls):
        basename = url_to_basename(url)
        candidate, n = basename, 2
        while candidate in used:
            candidate = f"{basename}_{n}"
            n += 1
        used.add(candidate)
        articles.append(Article(url=url, basename=candidate, index=index))
    return articles


class ArticleCaptureStage:
    """Render every discovered article and persist its raw markup."""

    name = "capture"

    def __init__(self, context: StageContext) -> None:
        self.context = context

    def run(self, source_run: SourceRun, articles: List[Article]) -> StageOutcome:
        ctx = self.context
        renderer = ctx.require_renderer()
        outcome = StageOutcome(stage=self.name, target=source_run.name)
        source_dir = source_run.source_dir
        updated = list(articles)

        for position, article in enumerate(articles):
            logger.info("[%s] Capturing %d/%d: %.80s", source_run.name, position + 1, len(articles), article.url)
            path = ctx.store.raw_html_path(source_dir, article.basename)

            if renderer.render_and_persist(article.url, path, ctx.extension_paths):
                markup = path.read_text(encoding="utf-8")
                updated[position] = article.model_copy(update={
                    "capture_status": CaptureStatus.CAPTURED,
                    "headline": page_title(markup, article.url),
                    "error": None,
                })
                outcome.succeeded += 1
            else:
                message = f"Render failed: {article.url}"
                updated[position] = article.model_copy(update={
                    "capture_status": CaptureStatus.CAPTURE_FAILED,
                    "error": message,
                })
                outcome.record_failure(message)

            ctx.store.save_manifest(source_dir, updated)
            if position < len(articles) - 1:
                ctx.pause(ctx.pipeline.capture_delay_ms, "capture")

        outcome.articles = updated
        logger.info("[%s] Captured %d/%d articles", source_run.name, outcome.succeeded, len(articles))
        return outcome


class TextExtractionStage:
    """Ask the Generator for the verbatim body text of each captured article."""

    name = "extract"

    def __init__(self, context: StageContext) -> None:
        self.context = context

    def _extract(self, article: Article, markup: str) -> str:
        ctx = self.context
        text = ctx.gate.call(
            partial(
                ctx.generator.generate,
                extraction_prompt(markup),
                temperature=ctx.generator_config.extraction_temperature,
            ),
            label=f"extract {article.basename}",
        ).strip()

        minimum = ctx.pipeline.min_extracted_chars
        if not text or len(text) < minimum:
            raise InsufficientExtractionError(
                f"Extracted text too short ({len(text)} < {minimum} chars)",
                {"url": article.url},
            )
        return text

    def run(
        self,
        source_dir: Path,
        articles: Optional[List[Article]] = None,
        skip_extracted: bool = False,
    ) -> StageOutcome:
        ctx = self.context
        outcome = StageOutcome(stage=self.name, target=source_dir.name)
        if articles is None:
            articles = ctx.store.list_articles(source_dir)

        updated = {a.basename: a for a in articles}
        todo = [
            a for a in articles
            if a.is_captured and not (skip_extracted and a.is_extracted)
        ]

        for position, article in enumerate(todo):
            logger.info("[%s] Extracting %d/%d: %s", source_dir.name, position + 1, len(todo), article.basename)
            try:
                markup = ctx.store.read_raw_html(source_dir, article.basename)
                text = self._extract(article, markup)
            except InsufficientExtractionError as e:
                logger.warning("[%s] %s: %s", source_dir.name, article.url, e.message)
                updated[article.basename] = article.model_copy(update={
                    "extract_status": ExtractStatus.EXTRACT_FAILED,
                    "error": e.message,
                })
                outcome.record_failure(f"{article.url}: {e.message}")
            except (GenerationError, OSError, UnicodeDecodeError) as e:
                logger.error("[%s] Extraction failed for %s: %s", source_dir.name, article.url, e)
                updated[article.basename] = article.model_copy(update={
                    "extract_status": ExtractStatus.EXTRACT_FAILED,
                    "error": str(e),
                })
                outcome.record_failure(f"{article.url}: {e}")
            else:
                ctx.store.write_article_text(source_dir, article.basename, text)
                updated[article.basename] = article.model_copy(update={
                    "extract_status": ExtractStatus.EXTRACTED,
                    "text": text,
                    "error": None,
                })
                outcome.succeeded += 1

            if position < len(todo) - 1:
                ctx.pause(ctx.pipeline.extraction_delay_ms, "extraction")

        outcome.articles = sorted(updated.values(), key=lambda a: a.index)
        ctx.store.save_manifest(source_dir, outcome.articles)
        logger.info("[%s] Extracted %d/%d articles", source_dir.name, outcome.succeeded, len(todo))
        return outcome


class _SynthesisStage:
    """Shared generate-and-write step of both synthesis stages."""

    name = "synthesize"

    def __init__(self, context: StageContext) -> None:
        self.context = context

    def _generate(
        self,
        outcome: StageOutcome,
        scope: Scope,
        kind: Kind,
        directory: Path,
        payload: str,
        label: str,
        model: Optional[str],
    ) -> None:
        ctx = self.context
        prompt = synthesis_prompt(kind, payload, label=label)
        try:
            text = ctx.gate.call(
                partial(
                    ctx.generator.generate,
                    prompt,
                    model=model,
                    temperature=ctx.generator_config.temperature,
                ),
                label=f"{scope.value} {kind.value} {directory.name}",
            )
        except GenerationError as e:
            outcome.record_failure(f"{kind.value} generation failed for {directory.name}: {e}")
            logger.error(outcome.errors[-1])
            return

        text = clean_markdown(text)
        if not text:
            outcome.record_failure(f"{kind.value} for {directory.name}: Generator returned no text")
            logger.error(outcome.errors[-1])
            return

        path = ctx.store.write(scope, kind, directory, text, model=model_suffix(model))
        outcome.documents.append(path)
        outcome.succeeded += 1


class SourceSynthesisStage(_SynthesisStage):
    """Digest and/or essay over the extracted articles of one source."""

    name = "source_synthesis"

    def run(
        self,
        source_dir: Path,
        kinds: Sequence[Kind],
        model: Optional[str] = None,
    ) -> StageOutcome:
        ctx = self.context
        outcome = StageOutcome(stage=self.name, target=source_dir.name)

        units = [
            PackUnit(a.url, a.headline or a.basename, a.text)
            for a in ctx.store.list_articles(source_dir)
            if a.is_extracted
        ]
        try:
            result = pack(units, ctx.pipeline.content_budget)
        except EmptyAggregationError as e:
            outcome.record_failure(f"{source_dir.name}: {e.message}")
            logger.warning(outcome.errors[-1])
            return outcome

        for kind in kinds:
            outcome.packed[kind.value] = result.included_count
            self._generate(outcome, Scope.SOURCE, kind, source_dir, result.payload, "ARTICLE", model)
        return outcome


class CombinedSynthesisStage(_SynthesisStage):
    """Cross-source digest and/or essay over the per-source documents of a run-date."""

    name = "combined_synthesis"

    def source_units(
        self,
        source_dirs: Sequence[Path],
        kind: Kind,
    ) -> List[PackUnit]:
        """Latest per-source document of ``kind`` (else the other kind), one per source."""
        store = self.context.store
        fallback = Kind.ESSAY if kind == Kind.DIGEST else Kind.DIGEST
        units = []
        for source_dir in source_dirs:
            index = store.index(source_dir)
            document = (
                index.latest(Scope.SOURCE, kind, source_dir.name)
                or index.latest(Scope.SOURCE, fallback, source_dir.name)
            )
            if document is None:
                logger.debug("No per-source document in %s", source_dir)
                continue
            headline = f"{document.kind.value.title()} for {source_dir.name} ({document.run_date})"
            units.append(PackUnit(source_dir.name, headline, document.read()))
        return units

    def run(
        self,
        date_dir: Path,
        kinds: Sequence[Kind],
        model: Optional[str] = None,
        sources: Optional[Sequence[str]] = None,
    ) -> StageOutcome:
        """
        Args:
            date_dir: Run-date directory
            kinds: Documents to generate
            model: Model override
            sources: Source names in packing order; every source directory
                of the run-date, alphabetically, when None
        """
        ctx = self.context
        outcome = StageOutcome(stage=self.name, target=date_dir.name)

        if sources is None:
            source_dirs = ctx.store.source_dirs(date_dir)
        else:
            source_dirs = [date_dir / name for name in sources if (date_dir / name).is_dir()]

        for kind in kinds:
            units = self.source_units(source_dirs, kind)
            try:
                result = pack(units, ctx.pipeline.content_budget, preamble=DOCUMENT_PREAMBLE, label="DOCUMENT")
            except EmptyAggregationError:
                outcome.record_failure(f"{date_dir.name}: no per-source documents for the combined {kind.value}")
                logger.warning(outcome.errors[-1])
                continue

            outcome.packed[kind.value] = result.included_count
            self._generate(outcome, Scope.COMBINED, kind, date_dir, result.payload, "DOCUMENT", model)
        return outcome
