"""Terminal output helpers for the factscan CLI.

Everything user-facing goes through a shared rich console on stdout;
diagnostics go through structlog on stderr.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from rich.console import Console
from rich.status import Status
from rich.table import Table

rich_console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def error(message: str) -> None:
    err_console.print(f"[bold red]error:[/] {message}")


def warning(message: str) -> None:
    err_console.print(f"[yellow]warning:[/] {message}")


def success(message: str) -> None:
    rich_console.print(f"[green]✓[/] {message}")


def info(message: str) -> None:
    rich_console.print(message)


def dim(message: str) -> None:
    rich_console.print(f"[dim]{message}[/]")


def header(title: str) -> None:
    rich_console.print(f"\n[bold]{title}[/]")
    rich_console.print("[dim]" + "─" * max(len(title), 20) + "[/]")


def subheader(title: str) -> None:
    rich_console.print(f"\n[bold cyan]{title}[/]")


def key_value(key: str, value: Any, indent: int = 2) -> None:
    pad = " " * indent
    rich_console.print(f"{pad}[dim]{key}:[/] {value}")


def table(
    title: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
) -> None:
    """Render ``rows`` as a rich table; cells are stringified."""
    tbl = Table(title=title)
    for i, col in enumerate(columns):
        tbl.add_column(col, style="cyan" if i == 0 else None, overflow="fold")
    for row in rows:
        tbl.add_row(*(str(cell) for cell in row))
    rich_console.print(tbl)


def status(message: str) -> Status:
    """Spinner on stderr, so piped stdout stays clean."""
    return err_console.status(message)
