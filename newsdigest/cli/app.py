"""Main CLI application."""

import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

from ..log import setup_logging
from .init import init_command
from .rerun import rerun_app
from .run import run_command
from .show import show_command
from .sources import sources_app

app = typer.Typer(
    name="newsdigest",
    help="News Digest - daily news capture, extraction and analysis",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (default: $NEWSDIGEST_CONFIG or ~/.config/newsdigest/config.yaml)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to this file"),
) -> None:
    """News Digest - daily news capture, extraction and analysis."""
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)
    ctx.obj = {"config_path": config_path}


# Register commands
app.command("init")(init_command)
app.command("run")(run_command)
app.command("show")(show_command)
app.add_typer(rerun_app, name="rerun", help="Rerun one stage against existing artifacts")
app.add_typer(sources_app, name="sources", help="Manage news sources")


if __name__ == "__main__":
    app()
