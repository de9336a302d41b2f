"""
Rich Terminal Display Components.

Provides console output for:
- Copy summaries
- Table listings
- Status messages
"""

from __future__ import annotations

from typing import Iterable

from rich.console import Console
from rich.table import Table

from sqlpipe.core.engine import CopyStats, Strategy


console = Console()


def print_summary(stats: CopyStats) -> None:
    """Print a summary table after a copy completes."""
    table = Table(title="Copy Summary", border_style="green")

    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Strategy", stats.strategy.value.upper())
    table.add_row("Source", str(stats.source))
    table.add_row("Destination", str(stats.destination))
    table.add_row("Duration", f"{stats.duration_seconds:.1f}s")
    table.add_row("Rows Before", f"{stats.rows_before:,}")
    table.add_row("Rows After", f"{stats.rows_after:,}")
    table.add_row("New Rows", f"{stats.new_rows:,}")

    if stats.strategy == Strategy.INCREMENTAL:
        table.add_row("Stale Candidates", f"{stats.stale_candidates:,}")
        table.add_row("Copied Since", stats.since or "-")
        table.add_row("Watermark", stats.watermark or "-")

    console.print(table)


def print_tables(database: str, names: Iterable[str]) -> None:
    """Print the tables of a database."""
    table = Table(title=f"Tables in {database}", border_style="blue")
    table.add_column("Table", style="cyan")
    for name in names:
        table.add_row(name)
    console.print(table)


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red bold]Error:[/red bold] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green bold]✓[/green bold] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow bold]⚠[/yellow bold] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")
