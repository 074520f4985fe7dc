"""
DonorConnect CLI - Rich Output Helpers

Consistent command-line output for the simulation commands.

Functions:
    print_table     - Print a formatted table
    print_status    - Print status checks with pass/fail indicators
    print_json      - Print formatted JSON
    print_key_value - Print aligned key/value pairs
    print_error     - Print error message
    print_success   - Print success message
    print_warning   - Print warning message
"""

from __future__ import annotations

import json
from typing import Any, Optional

from rich.console import Console
from rich.json import JSON
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

STATUS_PASS = "[green]OK[/green]"
STATUS_FAIL = "[red]FAIL[/red]"


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[str]],
    styles: Optional[list[str]] = None,
) -> None:
    """
    Print a rich table.

    Args:
        title: Table title
        columns: Column headers
        rows: Table rows (list of lists); short rows are padded
        styles: Optional column styles
    """
    table = Table(title=title)
    for i, col in enumerate(columns):
        style = styles[i] if styles and i < len(styles) else None
        table.add_column(col, style=style)

    for row in rows:
        padded_row = [str(cell) for cell in row] + [""] * (len(columns) - len(row))
        table.add_row(*padded_row[:len(columns)])

    console.print(table)


def print_status(checks: list[tuple[str, bool, str]], title: Optional[str] = None) -> None:
    """
    Print status checks with pass/fail indicators.

    Args:
        checks: List of (name, passed, message) tuples
        title: Optional title for the status list
    """
    if title:
        console.print(f"[bold]{title}[/bold]")
        console.print()

    for name, passed, message in checks:
        icon = STATUS_PASS if passed else STATUS_FAIL
        color = "green" if passed else "red"
        console.print(f"  {icon} [cyan]{name}[/cyan]: [{color}]{message}[/{color}]")


def print_json(data: dict | list, indent: int = 2) -> None:
    console.print(JSON(json.dumps(data, indent=indent, default=str)))


def print_key_value(items: list[tuple[str, Any]], title: Optional[str] = None) -> None:
    if title:
        console.print(f"[bold]{title}[/bold]")
        console.print()

    width = max((len(str(k)) for k, _ in items), default=0)
    for key, value in items:
        console.print(f"  [cyan]{str(key).ljust(width)}[/cyan]: {value}")


def print_error(message: str, hint: Optional[str] = None) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    if hint:
        err_console.print(f"[yellow]Hint:[/yellow] {hint}")


def print_success(message: str, details: Optional[str] = None) -> None:
    console.print(f"[bold green]Success:[/bold green] {message}")
    if details:
        console.print(f"[dim]{details}[/dim]")


def print_warning(message: str) -> None:
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")
