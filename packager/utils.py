"""Shared utility functions for the packager.

Provides name and size formatting plus Rich-based console reporting.  Every
public function is side-effect-free apart from the console printers.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def slugify(name: str) -> str:
    """Convert an arbitrary label to a safe filename fragment.

    * Lowercases the input.
    * Replaces runs of characters other than letters and digits with hyphens.
    * Strips leading/trailing hyphens.

    Examples::

        slugify("ObelixIA") -> "obelixia"
        slugify("  On Premise (v2) ") -> "on-premise-v2"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower())
    return slug.strip("-")


def to_base36(value: int) -> str:
    """Render a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError(f"Cannot encode negative value: {value}")
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    if value == 0:
        return "0"
    out: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_size(num_bytes: int) -> str:
    """Format a byte count as an approximate human-readable size.

    Examples::

        format_size(512)        -> "~512 B"
        format_size(500_000)    -> "~488.3 KB"
        format_size(15_728_640) -> "~15.0 MB"
    """
    if num_bytes < 1024:
        return f"~{max(num_bytes, 0)} B"
    size = float(num_bytes)
    for unit in ("KB", "MB", "GB"):
        size /= 1024
        if size < 1024 or unit == "GB":
            return f"~{size:.1f} {unit}"
    return f"~{size:.1f} GB"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")


def create_progress() -> Progress:
    """Create a Rich progress bar for package assembly.

    Returns:
        A ``Progress`` instance suitable for use as a context manager.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    )


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Return *moment* in UTC; naive datetimes are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def unix_millis(moment: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    return (as_utc(moment) - _EPOCH) // timedelta(milliseconds=1)


def iso_timestamp(moment: datetime) -> str:
    """ISO 8601 UTC timestamp with millisecond precision.

    Examples::

        iso_timestamp(datetime(2024, 1, 2, 3, 4, 5)) -> "2024-01-02T03:04:05.000Z"
    """
    utc = as_utc(moment)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
