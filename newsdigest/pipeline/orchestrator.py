"""Pipeline orchestrator: full runs and single-stage reruns."""

import json
import logging
import re
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pendulum
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..config import Config, SourceConfig, load_sources
from ..errors import ConfigurationError, InvalidRerunTargetError
from ..generation import CallGate, LLMProvider, create_provider
from ..ingestion import Renderer, create_renderer, source_name_for
from ..log import console
from ..models import PARSED_TEXT_DIR, RAW_HTML_DIR, Kind, SourceRun
from ..storage import ArtifactStore
from .stages import (
    ArticleCaptureStage,
    CombinedSynthesisStage,
    SourceSynthesisStage,
    StageContext,
    StageOutcome,
    TextExtractionStage,
    UrlDiscoveryStage,
)

logger = logging.getLogger(__name__)

_RUN_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class RerunTask(str, Enum):
    EXTRACT_ONLY = "extract-only"
    SOURCE_DIGEST = "source-digest"
    SOURCE_ESSAY = "source-essay"
    SOURCE_BOTH = "source-both"
    COMBINED_DIGEST = "combined-digest"
    COMBINED_ESSAY = "combined-essay"
    COMBINED_BOTH = "combined-both"

    @property
    def is_combined(self) -> bool:
        return self.value.startswith("combined-")

    @property
    def kinds(self) -> List[Kind]:
        return kinds_for(self.value.split("-", 1)[1])


def kinds_for(analysis_type: str) -> List[Kind]:
    """``digest`` | ``essay`` | ``both`` as document kinds."""
    if analysis_type == "both":
        return [Kind.DIGEST, Kind.ESSAY]
    return [Kind(analysis_type)]


class PipelineStage:
    """Represents a pipeline stage."""

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.success = False
        self.error: Optional[str] = None
        self.stats: Dict = {}

    def start(self):
        """Mark stage as started."""
        if self.start_time is None:
            self.start_time = time.time()

    def complete(self, stats: Optional[Dict] = None):
        """Mark stage as completed successfully."""
        self.end_time = time.time()
        self.success = True
        if stats:
            self.stats.update(stats)

    def fail(self, error: str):
        """Mark stage as failed."""
        self.end_time = time.time()
        self.success = False
        self.error = error

    def add(self, outcome: StageOutcome):
        """Fold one target's outcome into the stage totals."""
        self.start()
        self.end_time = time.time()
        self.stats["succeeded"] = self.stats.get("succeeded", 0) + outcome.succeeded
        self.stats["failed"] = self.stats.get("failed", 0) + outcome.failed
        self.stats.setdefault("targets", {})[outcome.target] = outcome.stats()
        if outcome.succeeded:
            self.success = True
        if outcome.errors:
            self.error = outcome.errors[-1]

    @property
    def duration(self) -> float:
        """Get stage duration in seconds."""
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return 0.0


class PipelineOrchestrator:
    """
    Drives the stage runners.

    ``run`` processes every enabled source in registry order, then the
    combined synthesis. A source whose stage comes back empty skips its own
    downstream stages; its siblings carry on. ``rerun`` runs one stage
    against artifacts already on disk.
    """

    def __init__(
        self,
        config: Config,
        generator: Optional[LLMProvider] = None,
        renderer: Optional[Renderer] = None,
        gate: Optional[CallGate] = None,
        store: Optional[ArtifactStore] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize pipeline orchestrator. Collaborators default to the configured ones."""
        self.config = config
        settings = config.config

        self.store = store or ArtifactStore(config.output_root)
        self.context = StageContext(
            store=self.store,
            gate=gate or CallGate.from_config(settings.gate, sleep=sleep),
            generator=generator or create_provider(config.get_generator_config()),
            renderer=renderer,
            pipeline_config=settings.pipeline,
            generator_config=settings.generator,
            extension_paths=settings.renderer.extension_paths,
            source_aliases=settings.source_aliases,
            sleep=sleep,
        )
        self._renderer_factory = lambda: create_renderer(settings.renderer)

        self.discover = UrlDiscoveryStage(self.context)
        self.capture = ArticleCaptureStage(self.context)
        self.extract = TextExtractionStage(self.context)
        self.source_synthesis = SourceSynthesisStage(self.context)
        self.combined_synthesis = CombinedSynthesisStage(self.context)

        self.stages: List[PipelineStage] = []
        self.total_start_time: Optional[float] = None

    def _reset_stages(self) -> None:
        self.stages = [
            PipelineStage("sources", "Loading source registry"),
            PipelineStage("discover", "Rendering sources and discovering article URLs"),
            PipelineStage("capture", "Rendering articles"),
            PipelineStage("extract", "Extracting article text"),
            PipelineStage("source_synthesis", "Generating per-source analysis"),
            PipelineStage("combined_synthesis", "Generating combined analysis"),
        ]

    def _stage(self, name: str) -> PipelineStage:
        return next(s for s in self.stages if s.name == name)

    def _ensure_renderer(self) -> None:
        if self.context.renderer is None:
            self.context.renderer = self._renderer_factory()

    def _load_sources(self, sources: Optional[List[SourceConfig]]) -> List[SourceConfig]:
        if sources is None:
            try:
                sources = load_sources(self.config.sources_path)
            except FileNotFoundError as e:
                raise ConfigurationError(str(e))
        enabled = [s for s in sources if s.enabled]
        if not enabled:
            raise ConfigurationError(f"No enabled sources in {self.config.sources_path}")
        return enabled

    def _source_runs(self, sources: List[SourceConfig], run_date: str) -> List[SourceRun]:
        runs = []
        seen = set()
        for index, source in enumerate(sources):
            name = source.name or source_name_for(source.url, self.context.source_aliases)
            if name in seen:
                logger.warning("Duplicate source name %s for %s; skipping", name, source.url)
                continue
            seen.add(name)
            runs.append(SourceRun(
                name=name,
                url=source.url,
                run_date=run_date,
                root=self.store.root,
                index=index,
            ))
        return runs

    def run(
        self,
        run_date: Optional[str] = None,
        analysis_type: Optional[str] = None,
        model: Optional[str] = None,
        sources: Optional[List[SourceConfig]] = None,
    ) -> bool:
        """
        Run the complete pipeline.

        Returns:
            True if at least one combined document was written, False otherwise

        Raises:
            ConfigurationError: The source registry is missing or empty
        """
        self.total_start_time = time.time()
        self._reset_stages()
        run_date = run_date or pendulum.now().format("YYYY-MM-DD")
        kinds = kinds_for(analysis_type or self.config.config.pipeline.analysis_type)

        sources_stage = self._stage("sources")
        sources_stage.start()
        try:
            source_runs = self._source_runs(self._load_sources(sources), run_date)
        except ConfigurationError as e:
            sources_stage.fail(e.message)
            raise
        sources_stage.complete({"sources": len(source_runs)})

        self._ensure_renderer()
        date_dir = self.store.date_dir(run_date)
        date_dir.mkdir(parents=True, exist_ok=True)

        console.print(Panel.fit(
            f"📰 News analysis pipeline\n"
            f"Date: {run_date} • Sources: {len(source_runs)} • "
            f"Documents: {', '.join(k.value for k in kinds)} • Model: {model or 'default'}",
            style="bold blue",
        ))

        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                task = progress.add_task("Processing sources", total=len(source_runs))
                for source_run in source_runs:
                    progress.update(task, description=f"Processing {source_run.name}")
                    self._run_source(source_run, kinds, model)
                    progress.advance(task, 1)

                progress.update(task, description="Generating combined analysis")
                combined = self._stage("combined_synthesis")
                combined.start()
                outcome = self.combined_synthesis.run(
                    date_dir,
                    kinds,
                    model=model,
                    sources=[r.name for r in source_runs],
                )
                combined.add(outcome)
                if outcome.empty:
                    combined.fail(outcome.errors[-1] if outcome.errors else "No combined documents")

            return self._stage("combined_synthesis").success
        finally:
            self._save_stage_stats(date_dir)
            self._print_summary(run_date, date_dir)

    def _run_source(self, source_run: SourceRun, kinds: Sequence[Kind], model: Optional[str]) -> None:
        """
        Run the per-source stages, stopping at the first empty one.

        An unexpected failure is recorded on the stage that raised it; the
        caller moves on to the next source.
        """
        logger.info("Processing source %s (%s)", source_run.name, source_run.url)
        current = {"stage": "discover"}
        try:
            self._run_source_stages(source_run, kinds, model, current)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception("[%s] %s stage failed", source_run.name, current["stage"])
            failure = StageOutcome(stage=current["stage"], target=source_run.name)
            failure.record_failure(f"{source_run.name}: {e}")
            self._stage(current["stage"]).add(failure)

    def _run_source_stages(
        self,
        source_run: SourceRun,
        kinds: Sequence[Kind],
        model: Optional[str],
        current: Dict[str, str],
    ) -> None:
        outcome = self.discover.run(source_run)
        self._stage("discover").add(outcome)
        if outcome.empty:
            logger.warning("[%s] No article URLs; skipping remaining stages", source_run.name)
            return

        current["stage"] = "capture"
        outcome = self.capture.run(source_run, outcome.articles)
        self._stage("capture").add(outcome)
        if outcome.empty:
            logger.warning("[%s] No articles captured; skipping remaining stages", source_run.name)
            return

        current["stage"] = "extract"
        outcome = self.extract.run(source_run.source_dir, outcome.articles)
        self._stage("extract").add(outcome)
        if outcome.empty:
            logger.warning("[%s] No text extracted; skipping synthesis", source_run.name)
            return

        current["stage"] = "source_synthesis"
        outcome = self.source_synthesis.run(source_run.source_dir, kinds, model=model)
        self._stage("source_synthesis").add(outcome)
        if outcome.empty:
            logger.warning("[%s] No per-source documents generated", source_run.name)

    # Reruns

    def validate_rerun_target(self, task: RerunTask, directory: Path) -> Path:
        """
        Check that ``directory`` has the shape ``task`` needs.

        Source-level tasks need ``<root>/<run-date>/<source>``; combined tasks
        need ``<root>/<run-date>``.

        Raises:
            InvalidRerunTargetError: Wrong shape or missing input directory
        """
        target = directory.expanduser().resolve()
        root = self.store.root.resolve()
        details = {"task": task.value, "directory": str(target)}

        if not target.is_dir():
            raise InvalidRerunTargetError(f"Directory does not exist: {target}", details)
        if target == root or root not in target.parents:
            raise InvalidRerunTargetError(f"Directory must be inside {root}", details)

        if task.is_combined:
            if target.parent != root or not _RUN_DATE_RE.match(target.name):
                raise InvalidRerunTargetError(
                    f"{task.value} needs a run-date directory (<root>/YYYY-MM-DD), got {target}",
                    details,
                )
            return target

        if target.parent.parent != root or not _RUN_DATE_RE.match(target.parent.name):
            raise InvalidRerunTargetError(
                f"{task.value} needs a source directory (<root>/YYYY-MM-DD/<source>), got {target}",
                details,
            )

        required = RAW_HTML_DIR if task == RerunTask.EXTRACT_ONLY else PARSED_TEXT_DIR
        if not (target / required).is_dir():
            raise InvalidRerunTargetError(
                f"Missing '{required}' directory in {target}",
                {**details, "missing": required},
            )
        return target

    def rerun(
        self,
        task: RerunTask,
        directory: Path,
        model: Optional[str] = None,
        skip_extracted: bool = False,
    ) -> PipelineStage:
        """
        Run one stage against existing artifacts.

        Target problems are reported on the returned stage, not raised.
        """
        stage = PipelineStage(task.value, f"Rerun {task.value}")
        stage.start()
        console.print(f"[bold]▶️ Rerun {task.value}[/bold] [dim]{directory}[/dim]")

        try:
            target = self.validate_rerun_target(task, directory)
        except InvalidRerunTargetError as e:
            logger.error("Rerun %s rejected: %s", task.value, e.message)
            console.print(f"[red]❌ {e.message}[/red]")
            stage.fail(e.message)
            return stage

        if task == RerunTask.EXTRACT_ONLY:
            outcome = self.extract.run(target, skip_extracted=skip_extracted)
        elif task.is_combined:
            outcome = self.combined_synthesis.run(target, task.kinds, model=model)
        else:
            outcome = self.source_synthesis.run(target, task.kinds, model=model)

        stage.add(outcome)
        if outcome.empty:
            stage.fail(outcome.errors[-1] if outcome.errors else f"{task.value} produced nothing")
            console.print(f"[red]❌ {stage.error}[/red]")
        else:
            stage.complete()
            console.print(
                f"[green]✅ {task.value}: {outcome.succeeded} succeeded, {outcome.failed} failed[/green]"
            )
            for path in outcome.documents:
                console.print(f"   • {path.name}")
        return stage

    # Reporting

    def _save_stage_stats(self, date_dir: Path):
        """Save pipeline stage statistics."""
        stats = {
            "pipeline": {
                "total_duration": time.time() - self.total_start_time if self.total_start_time else 0,
                "completed_at": datetime.now().isoformat(),
                "usage": self.context.generator.get_usage_stats(),
            },
            "stages": {},
        }

        for stage in self.stages:
            stats["stages"][stage.name] = {
                "duration": stage.duration,
                "success": stage.success,
                "error": stage.error,
                "stats": stage.stats,
            }

        date_dir.mkdir(parents=True, exist_ok=True)
        stats_file = date_dir / "pipeline_stats.json"
        with open(stats_file, "w", encoding="utf-8") as f:
            json.dump(stats, f, indent=2)

    def _print_summary(self, run_date: str, date_dir: Path):
        """Print pipeline execution summary."""
        total_duration = time.time() - self.total_start_time if self.total_start_time else 0

        table = Table(title="Pipeline Summary")
        table.add_column("Stage", style="cyan")
        table.add_column("Status", style="bold")
        table.add_column("Duration", style="yellow")
        table.add_column("Details", style="dim")

        for stage in self.stages:
            status = "[green]✓[/green]" if stage.success else "[red]✗[/red]"
            duration = f"{stage.duration:.1f}s" if stage.duration > 0 else "-"

            details = ""
            if stage.name == "sources":
                details = f"{stage.stats.get('sources', 0)} sources"
            elif stage.stats:
                details = f"{stage.stats.get('succeeded', 0)} ok, {stage.stats.get('failed', 0)} failed"
            if not stage.success and stage.error:
                details = f"{details} • {stage.error}" if details else stage.error

            table.add_row(stage.name.replace("_", " ").title(), status, duration, details)

        console.print("\n")
        console.print(table)

        combined = self._stage("combined_synthesis")
        if combined.success:
            console.print(Panel(
                f"[green]✅ Pipeline completed![/green]\n\n"
                f"Run date: {run_date}\n"
                f"Duration: {total_duration:.1f} seconds\n"
                f"Output directory: {date_dir}",
                style="green",
            ))
        else:
            failed_stages = [s.name for s in self.stages if not s.success]
            console.print(Panel(
                f"[red]❌ No combined analysis generated[/red]\n\n"
                f"Stages without output: {', '.join(failed_stages)}\n"
                f"Duration: {total_duration:.1f} seconds\n"
                f"Completed artifacts stay in {date_dir} for reruns.",
                style="red",
            ))
