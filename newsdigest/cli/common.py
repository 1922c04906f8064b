"""Helpers shared by CLI commands."""

from enum import Enum
from pathlib import Path
from typing import Optional

import pendulum
import typer

from ..config import Config
from ..errors import ConfigurationError
from ..log import console


class AnalysisType(str, Enum):
    digest = "digest"
    essay = "essay"
    both = "both"


class DocumentKind(str, Enum):
    digest = "digest"
    essay = "essay"


def get_config(ctx: typer.Context) -> Config:
    """
    Load the configuration once per invocation.

    Exits with status 2 when the config file is missing or invalid.
    """
    if ctx.obj is None:
        ctx.obj = {}
    if "config" not in ctx.obj:
        config = Config(ctx.obj.get("config_path"))
        try:
            config.config
        except ConfigurationError as e:
            report_configuration_error(e, config.config_path)
            raise typer.Exit(2)
        ctx.obj["config"] = config
    return ctx.obj["config"]


def resolve_run_date(run_date: Optional[str]) -> str:
    """Validate a YYYY-MM-DD run date; default to today."""
    if run_date is None:
        return pendulum.now().format("YYYY-MM-DD")
    try:
        return pendulum.from_format(run_date, "YYYY-MM-DD").format("YYYY-MM-DD")
    except ValueError:
        console.print(f"[red]Invalid date '{run_date}'. Use YYYY-MM-DD.[/red]")
        raise typer.Exit(2)


def report_configuration_error(error: ConfigurationError, config_path: Optional[Path] = None) -> None:
    console.print(f"[red]❌ {error.message}[/red]")
    for problem in error.details.get("problems", []):
        console.print(f"   • {problem}")
    if config_path is not None:
        console.print(f"[dim]Config: {config_path}. Run 'newsdigest init' to create one.[/dim]")
