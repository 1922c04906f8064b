"""Show command implementation."""

from typing import Optional

import typer
from rich.markdown import Markdown
from rich.panel import Panel

from ..errors import ArtifactNotFoundError
from ..log import console
from ..models import Kind, Scope
from ..storage import ArtifactStore
from .common import DocumentKind, get_config, resolve_run_date


def show_command(
    ctx: typer.Context,
    run_date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Run date (YYYY-MM-DD). Default: the most recent run",
    ),
    source: Optional[str] = typer.Option(
        None,
        "--source",
        "-s",
        help="Show a per-source document instead of the combined one",
    ),
    kind: DocumentKind = typer.Option(DocumentKind.digest, "--kind", "-k", help="Document kind"),
    raw: bool = typer.Option(False, "--raw", help="Print the markdown source"),
) -> None:
    """Render the latest generated document."""
    config = get_config(ctx)
    store = ArtifactStore(config.output_root)

    if run_date is None:
        run_dirs = sorted(
            [d for d in store.root.iterdir() if d.is_dir()] if store.root.is_dir() else [],
            reverse=True,
        )
        if not run_dirs:
            console.print("[red]No runs found. Run 'newsdigest run' first.[/red]")
            raise typer.Exit(1)
        date_dir = run_dirs[0]
    else:
        date_dir = store.date_dir(resolve_run_date(run_date))

    scope = Scope.SOURCE if source else Scope.COMBINED
    directory = date_dir / source if source else date_dir

    try:
        document = store.latest(scope, Kind(kind.value), directory)
    except ArtifactNotFoundError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    if raw:
        console.print(document.content, markup=False, highlight=False)
        return

    console.print(Panel.fit(
        f"{document.path.name}\nModel: {document.model} • Run date: {document.run_date}",
        style="bold blue",
    ))
    console.print(Markdown(document.content))
