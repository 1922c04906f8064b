"""Init command implementation."""

from pathlib import Path
from typing import List, Optional

import typer
from rich.panel import Panel

from ..config import ConfigModel, SourceConfig, default_config_path, save_config, save_sources
from ..log import console

DEFAULT_SOURCE_ALIASES = {
    "static.nytimes.com": "nytimes_email",
    "www.nytimes.com": "nytimes",
}


def create_default_sources() -> List[SourceConfig]:
    """Create default news sources."""
    return [
        SourceConfig(url="https://www.nytimes.com/"),
        SourceConfig(url="https://www.wsj.com/"),
        SourceConfig(url="https://www.bbc.com/news", name="bbc"),
        SourceConfig(url="https://apnews.com/"),
        SourceConfig(url="https://www.reuters.com/", enabled=False),
    ]


def init_command(
    ctx: typer.Context,
    config_dir: Optional[Path] = typer.Option(
        None,
        "--config-dir",
        help="Configuration directory (default: directory of the config file)",
    ),
    output_dir: Path = typer.Option(
        Path("daily_news_data"),
        "--output-dir",
        "-o",
        help="Root directory for run artifacts",
    ),
    provider: str = typer.Option("gemini", "--provider", help="Generator provider (gemini, openai, mock)"),
    extension: Optional[List[Path]] = typer.Option(
        None,
        "--extension",
        "-e",
        help="Unpacked browser extension to load while rendering (repeatable)",
    ),
    seed_sources: bool = typer.Option(
        True,
        "--seed-sources/--no-seed-sources",
        help="Seed default news sources",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration"),
) -> None:
    """Initialize News Digest configuration and source registry."""
    console.print(Panel.fit("📰 News Digest - Initialization", style="bold blue"))

    config_path = (ctx.obj or {}).get("config_path") or default_config_path()
    if config_dir is not None:
        config_path = config_dir / "config.yaml"
    config_dir = config_path.parent
    sources_path = config_dir / "sources.yaml"

    if config_path.exists() and not force:
        console.print(f"[red]Config already exists: {config_path}. Use --force to overwrite.[/red]")
        raise typer.Exit(1)

    config_dir.mkdir(parents=True, exist_ok=True)

    try:
        config = ConfigModel(
            output_base_dir=str(output_dir),
            source_aliases=dict(DEFAULT_SOURCE_ALIASES),
            generator={
                "provider": provider,
                "api_key_env": "OPENAI_API_KEY" if provider == "openai" else "GEMINI_API_KEY",
                "model": "gpt-4o-mini" if provider == "openai" else "gemini-1.5-flash-latest",
            },
            renderer={"extension_paths": [str(p) for p in extension or []]},
        )
    except ValueError as e:
        console.print(f"[red]❌ Invalid settings: {e}[/red]")
        raise typer.Exit(2)

    save_config(config, config_path)
    console.print(f"✅ Created config: {config_path}")

    if seed_sources:
        sources = create_default_sources()
        save_sources(sources, sources_path)
        console.print(f"✅ Created sources: {sources_path} (seeded with {len(sources)} sources)")
    else:
        save_sources([], sources_path)
        console.print(f"✅ Created sources: {sources_path} (empty)")

    output_dir.mkdir(parents=True, exist_ok=True)
    console.print(f"✅ Created output directory: {output_dir}")

    key_env = config.generator.api_key_env
    console.print(
        Panel(
            f"[green]✅ News Digest initialized successfully![/green]\n\n"
            f"Configuration: {config_path}\n"
            f"Sources: {sources_path}\n"
            f"Output: {output_dir}\n\n"
            f"Next steps:\n"
            f"1. Set the Generator API key: [bold]export {key_env}=your_key[/bold]\n"
            f"2. Review sources: [bold]newsdigest sources list[/bold]\n"
            f"3. Run: [bold]newsdigest run[/bold]",
            style="green",
        )
    )
