"""Run command implementation."""

from typing import Optional

import typer

from ..errors import ConfigurationError
from ..log import console
from ..pipeline import PipelineOrchestrator
from .common import AnalysisType, get_config, report_configuration_error, resolve_run_date


def run_command(
    ctx: typer.Context,
    run_date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Logical date of the run (YYYY-MM-DD). Default: today",
    ),
    analysis_type: Optional[AnalysisType] = typer.Option(
        None,
        "--type",
        "-t",
        help="Documents to generate. Default: pipeline.analysis_type from config",
    ),
    model: Optional[str] = typer.Option(
        None,
        "--model",
        "-m",
        help="Generator model for synthesis (overrides config)",
    ),
) -> None:
    """Run the full pipeline over every enabled source."""
    config = get_config(ctx)
    run_date = resolve_run_date(run_date)

    try:
        # Configuration problems stop the run before any stage
        config.ensure_valid()

        orchestrator = PipelineOrchestrator(config)
        success = orchestrator.run(
            run_date=run_date,
            analysis_type=analysis_type.value if analysis_type else None,
            model=model,
        )
    except ConfigurationError as e:
        report_configuration_error(e, config.config_path)
        raise typer.Exit(2)
    except KeyboardInterrupt:
        console.print("\n[yellow]Pipeline interrupted by user[/yellow]")
        raise typer.Exit(1)

    if not success:
        raise typer.Exit(1)
