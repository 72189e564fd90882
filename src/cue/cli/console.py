"""Console output helpers shared by the CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

console = Console()


def _styled(style: str, msg: str) -> None:
    console.print(f"[{style}]{msg}[/{style}]")


def error(msg: str) -> None:
    _styled("red", msg)


def warning(msg: str) -> None:
    _styled("yellow", msg)


def success(msg: str) -> None:
    _styled("green", msg)


def dim(msg: str) -> None:
    _styled("dim", msg)


def create_table(columns: list[tuple[str, str]], title: str | None = None) -> Table:
    """Build a table from ``(header, style)`` pairs; an empty style means plain."""
    table = Table(title=title)
    for header, style in columns:
        table.add_column(header, style=style or None)
    return table


def confirm_or_cancel(prompt: str, force: bool) -> bool:
    """Ask for confirmation unless ``force`` is set. Prints "Cancelled" on no."""
    if force or typer.confirm(prompt):
        return True
    dim("Cancelled")
    return False
