"""Sources management commands."""

from typing import Optional

import typer
from pydantic import ValidationError
from rich.table import Table

from ..config import SourceConfig, load_sources, save_sources
from ..errors import ConfigurationError
from ..ingestion import source_name_for
from ..log import console
from .common import get_config

sources_app = typer.Typer(help="Manage news sources")


def _source_name(source: SourceConfig, aliases) -> str:
    return source.name or source_name_for(source.url, aliases)


@sources_app.command("list")
def sources_list(ctx: typer.Context) -> None:
    """List configured sources in run order."""
    config = get_config(ctx)

    try:
        sources = load_sources(config.sources_path)
    except FileNotFoundError:
        console.print("[red]Sources file not found. Run 'newsdigest init' first.[/red]")
        raise typer.Exit(1)
    except ConfigurationError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(2)
    aliases = config.config.source_aliases

    if not sources:
        console.print("[yellow]No sources configured.[/yellow]")
        return

    table = Table(title="Configured Sources")
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Enabled", style="yellow")
    table.add_column("URL", style="blue")

    for position, source in enumerate(sources, 1):
        table.add_row(
            str(position),
            _source_name(source, aliases),
            "✓" if source.enabled else "✗",
            source.url,
        )

    console.print(table)


@sources_app.command("add")
def sources_add(
    ctx: typer.Context,
    url: str = typer.Option(..., "--url", "-u", help="Source page URL"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Source name (default: derived from the host)"),
    disabled: bool = typer.Option(False, "--disabled", help="Add the source disabled"),
) -> None:
    """Add a source at the end of the registry."""
    config = get_config(ctx)
    sources_path = config.sources_path

    try:
        sources = load_sources(sources_path)
    except FileNotFoundError:
        sources = []

    try:
        new_source = SourceConfig(url=url, name=name, enabled=not disabled)
    except ValidationError as e:
        console.print(f"[red]Invalid source: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1)

    if any(s.url == new_source.url for s in sources):
        console.print(f"[red]Source URL already exists: {new_source.url}[/red]")
        raise typer.Exit(1)

    sources.append(new_source)
    save_sources(sources, sources_path)

    console.print(f"[green]✅ Added source: {_source_name(new_source, config.config.source_aliases)}[/green]")


@sources_app.command("remove")
def sources_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Source name or URL to remove"),
) -> None:
    """Remove a source."""
    config = get_config(ctx)
    sources_path = config.sources_path

    try:
        sources = load_sources(sources_path)
    except FileNotFoundError:
        console.print("[red]Sources file not found.[/red]")
        raise typer.Exit(1)

    aliases = config.config.source_aliases
    original_count = len(sources)
    sources = [s for s in sources if s.url != name and _source_name(s, aliases) != name]

    if len(sources) == original_count:
        console.print(f"[red]Source '{name}' not found.[/red]")
        raise typer.Exit(1)

    save_sources(sources, sources_path)
    console.print(f"[green]✅ Removed source: {name}[/green]")
