"""Rerun commands: one stage against artifacts already on disk."""

from pathlib import Path
from typing import Optional

import typer

from ..errors import ConfigurationError
from ..log import console
from ..pipeline import PipelineOrchestrator, RerunTask
from .common import get_config, report_configuration_error

rerun_app = typer.Typer(help="Rerun one stage against existing artifacts")

SOURCE_DIR_HELP = "Source directory (<output>/<YYYY-MM-DD>/<source>)"
DATE_DIR_HELP = "Run-date directory (<output>/<YYYY-MM-DD>)"
MODEL_HELP = "Generator model (overrides config)"


def _rerun(
    ctx: typer.Context,
    task: RerunTask,
    directory: Path,
    model: Optional[str] = None,
    skip_extracted: bool = False,
) -> None:
    config = get_config(ctx)
    try:
        orchestrator = PipelineOrchestrator(config)
    except ConfigurationError as e:
        report_configuration_error(e, config.config_path)
        raise typer.Exit(2)

    try:
        stage = orchestrator.rerun(task, directory, model=model, skip_extracted=skip_extracted)
    except KeyboardInterrupt:
        console.print("\n[yellow]Rerun interrupted by user[/yellow]")
        raise typer.Exit(1)

    if not stage.success:
        raise typer.Exit(1)


@rerun_app.command("extract-only")
def extract_only(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help=SOURCE_DIR_HELP),
    skip_extracted: bool = typer.Option(
        False,
        "--skip-extracted",
        help="Leave articles that already have parsed text alone",
    ),
) -> None:
    """Extract text from the captured pages of one source."""
    _rerun(ctx, RerunTask.EXTRACT_ONLY, directory, skip_extracted=skip_extracted)


@rerun_app.command("source-digest")
def source_digest(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help=SOURCE_DIR_HELP),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=MODEL_HELP),
) -> None:
    """Regenerate the digest of one source."""
    _rerun(ctx, RerunTask.SOURCE_DIGEST, directory, model)


@rerun_app.command("source-essay")
def source_essay(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help=SOURCE_DIR_HELP),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=MODEL_HELP),
) -> None:
    """Regenerate the essay of one source."""
    _rerun(ctx, RerunTask.SOURCE_ESSAY, directory, model)


@rerun_app.command("source-both")
def source_both(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help=SOURCE_DIR_HELP),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=MODEL_HELP),
) -> None:
    """Regenerate the digest and essay of one source."""
    _rerun(ctx, RerunTask.SOURCE_BOTH, directory, model)


@rerun_app.command("combined-digest")
def combined_digest(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help=DATE_DIR_HELP),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=MODEL_HELP),
) -> None:
    """Regenerate the combined digest of a run-date."""
    _rerun(ctx, RerunTask.COMBINED_DIGEST, directory, model)


@rerun_app.command("combined-essay")
def combined_essay(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help=DATE_DIR_HELP),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=MODEL_HELP),
) -> None:
    """Regenerate the combined essay of a run-date."""
    _rerun(ctx, RerunTask.COMBINED_ESSAY, directory, model)


@rerun_app.command("combined-both")
def combined_both(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help=DATE_DIR_HELP),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=MODEL_HELP),
) -> None:
    """Regenerate the combined digest and essay of a run-date."""
    _rerun(ctx, RerunTask.COMBINED_BOTH, directory, model)
