"""
CLI entry point for httpreplay.

Recording and replaying happen inside test code; the CLI only inspects
cassette files that are already on disk.

Commands:
    list    List the cassettes under a fixtures directory
    show    Show the episodes stored in one cassette file
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from httpreplay import __version__
from httpreplay.errors import VCRError
from httpreplay.schema import CassetteDocument
from httpreplay.store import Cassette, FileStorage
from httpreplay.store.cassette import DEFAULT_FIXTURES_DIR

app = typer.Typer(
    name="httpreplay",
    help="Inspect recorded HTTP cassettes.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]httpreplay[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Enable debug logging.",
        ),
    ] = False,
) -> None:
    """
    httpreplay - Record and replay HTTP exchanges for deterministic tests.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


def _split_cassette_file(path: Path) -> tuple[str, bool]:
    """Return (cassette name, gzip) for a cassette file name."""
    name = path.name
    if name.endswith(".json.gz"):
        return name[: -len(".json.gz")], True
    if name.endswith(".json"):
        return name[: -len(".json")], False
    return name, path.suffix == ".gz"


def _load_file(path: Path, gzip: bool) -> Cassette:
    name, _ = _split_cassette_file(path)
    cassette = Cassette(name or path.name, fixtures_dir=path.parent, gzip=gzip)
    cassette.decode(FileStorage().read_bytes(path))
    return cassette


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    return f"{size / 1024:.1f} KiB"


@app.command("list")
def list_cassettes(
    fixtures_dir: Annotated[
        Path,
        typer.Argument(
            help="Directory holding cassette files.",
            file_okay=False,
        ),
    ] = DEFAULT_FIXTURES_DIR,
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """
    List the cassettes under a fixtures directory.

    Example:
        $ httpreplay list tests/fixtures/vcr
    """
    if not fixtures_dir.is_dir():
        console.print(f"[yellow]No fixtures directory at {fixtures_dir}[/yellow]")
        raise typer.Exit(code=0)

    files = sorted(
        p for p in fixtures_dir.rglob("*") if p.is_file() and p.name.endswith((".json", ".json.gz"))
    )

    rows = []
    for path in files:
        name, gzip = _split_cassette_file(path)
        relative = path.parent.relative_to(fixtures_dir) / name
        try:
            episodes: int | None = len(_load_file(path, gzip))
            error = None
        except VCRError as e:
            episodes = None
            error = e.message
        rows.append({
            "name": relative.as_posix(),
            "path": str(path),
            "gzip": gzip,
            "episodes": episodes,
            "size": path.stat().st_size,
            "error": error,
        })

    if as_json:
        typer.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        console.print("[dim]No cassettes found.[/dim]")
        raise typer.Exit(code=0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Cassette", style="cyan")
    table.add_column("Episodes", justify="right")
    table.add_column("Gzip", width=5)
    table.add_column("Size", justify="right")

    for row in rows:
        episodes_display = "[red]unreadable[/red]" if row["episodes"] is None else str(row["episodes"])
        table.add_row(
            row["name"],
            episodes_display,
            "yes" if row["gzip"] else "no",
            _format_size(row["size"]),
        )

    console.print(table)


@app.command()
def show(
    cassette_file: Annotated[
        Path,
        typer.Argument(
            help="Path to a cassette file (.json or .json.gz).",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    gzip: Annotated[
        bool,
        typer.Option(
            "--gzip",
            help="Treat the file as gzip-framed regardless of its name.",
        ),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output the parsed cassette as JSON.",
        ),
    ] = False,
) -> None:
    """
    Show the episodes stored in a cassette file.

    Example:
        $ httpreplay show tests/fixtures/vcr/search_flow.json
    """
    _, gzip_by_name = _split_cassette_file(cassette_file)
    try:
        cassette = _load_file(cassette_file, gzip or gzip_by_name)
    except VCRError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    if as_json:
        document = CassetteDocument(name=cassette.name, episodes=cassette.episodes)
        typer.echo(document.model_dump_json(indent=2))
        return

    console.print(f"[bold]Cassette {cassette.name}[/bold]")
    console.print(f"  File: {cassette_file}")
    console.print(f"  Episodes: {len(cassette)}")
    console.print()

    if not cassette.episodes:
        console.print("[dim]No episodes recorded.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=3)
    table.add_column("Method", style="cyan")
    table.add_column("URL")
    table.add_column("Status", width=10)
    table.add_column("Req", justify="right")
    table.add_column("Resp", justify="right")

    for index, episode in enumerate(cassette.episodes, start=1):
        code = episode.response.status_code
        if code < 400:
            status_display = f"[green]{episode.response.status}[/green]"
        elif code < 500:
            status_display = f"[yellow]{episode.response.status}[/yellow]"
        else:
            status_display = f"[red]{episode.response.status}[/red]"

        table.add_row(
            str(index),
            episode.request.method,
            episode.request.url,
            status_display,
            _format_size(len(episode.request.body)),
            _format_size(len(episode.response.body)),
        )

    console.print(table)


if __name__ == "__main__":
    app()
