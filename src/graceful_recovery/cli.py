# src/graceful_recovery/cli.py
"""
graceful-recovery Command Line Interface (CLI).

A small inspection aid built on `typer` and `rich`. It never writes a
session; it only reads or removes the file the library maintains.

Usage
-----
    # Show the last session (path defaults to GRACEFUL_RECOVERY_PATH)
    $ graceful-recovery show
    $ graceful-recovery show state/session.json --state-only

    # Remove a stale session so the next start begins fresh
    $ graceful-recovery clear --yes
"""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm
from rich.syntax import Syntax
from rich.table import Table

from graceful_recovery import __version__
from graceful_recovery.core.session.record import SessionRecord
from graceful_recovery.core.session.storage import PersistenceGateway
from graceful_recovery.core.settings import load_settings

# Pick up GRACEFUL_RECOVERY_* from a local .env before settings are read
load_dotenv()

app = typer.Typer(
    help="graceful-recovery: inspect and manage persisted session snapshots.",
    rich_markup_mode="markdown",
)
console = Console()

PathArg = Annotated[
    Path | None,
    typer.Argument(
        help="Session file (defaults to GRACEFUL_RECOVERY_PATH or session.json).",
        dir_okay=False,
    ),
]


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _resolve(path: Path | None) -> Path:
    return path if path is not None else Path(load_settings().path)


def _format_at(at: int) -> str:
    return datetime.fromtimestamp(at / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3] + "Z"


def _render_meta(record: SessionRecord, source: Path) -> None:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("file", str(source))
    table.add_row("reason", f"[cyan]{record.meta.reason}[/cyan]")
    table.add_row("at", f"{_format_at(record.meta.at)} ({record.meta.at})")

    error: Any = record.meta.error
    if isinstance(error, dict):
        label = f"{error.get('name', 'Error')}: {error.get('message', '')}"
        table.add_row("error", f"[red]{escape(label)}[/red]")
    elif error is not None:
        table.add_row("error", f"[red]{escape(repr(error))}[/red]")

    console.print(Panel(table, title="Session", border_style="magenta"))

    if isinstance(error, dict) and error.get("stack"):
        console.print(Panel(escape(str(error["stack"])), title="Stack", border_style="red"))


def _render_state(state: Any) -> None:
    text = json.dumps(state, indent=2, ensure_ascii=False)
    console.print(Syntax(text, "json", word_wrap=True))


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command()  # type: ignore[misc]
def show(
    path: PathArg = None,
    state_only: Annotated[
        bool,
        typer.Option("--state-only", "-s", help="Print only the state as JSON."),
    ] = False,
) -> None:
    """
    Show the persisted session: why and when it was written, and its state.

    Exits with code 1 when there is no readable session at the path.
    """
    target = _resolve(path)
    record = asyncio.run(PersistenceGateway(target).read())
    if record is None:
        console.print(f"[bold yellow]No session found at {escape(str(target))}[/bold yellow]")
        raise typer.Exit(code=1)

    if state_only:
        # Plain JSON for piping into other tools
        typer.echo(json.dumps(record.state, indent=2, ensure_ascii=False))
        return

    _render_meta(record, target)
    _render_state(record.state)


@app.command()  # type: ignore[misc]
def clear(
    path: PathArg = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Delete without asking for confirmation."),
    ] = False,
) -> None:
    """Delete the session file so the next start has nothing to recover."""
    target = _resolve(path)
    if not target.exists():
        console.print(f"[dim]Nothing to clear at {escape(str(target))}[/dim]")
        return

    if not yes and not Confirm.ask(f"Delete session file {target}?", default=False):
        console.print("[dim]Aborted.[/dim]")
        raise typer.Exit(code=1)

    try:
        target.unlink()
    except OSError as e:
        message = f"Failed to delete {escape(str(target))}: {escape(str(e))}"
        console.print(f"[bold red]{message}[/bold red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Removed {escape(str(target))}[/green]")


@app.command()  # type: ignore[misc]
def version() -> None:
    """Print the installed package version."""
    console.print(__version__)


if __name__ == "__main__":
    app()
