"""Output formatting for stashctl.

Provides consistent output in JSON, table, and quiet modes using Rich, plus
the upload queue table.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.progress_bar import ProgressBar
from rich.table import Table

from stashctl.models.progress import TaskSnapshot, TaskStatus

# =============================================================================
# Console Instances
# =============================================================================

console = Console()
err_console = Console(stderr=True)


# =============================================================================
# Output Format
# =============================================================================


class OutputFormat(Enum):
    """Output format options."""

    JSON = "json"
    TABLE = "table"

    @classmethod
    def from_string(cls, value: str) -> OutputFormat:
        return cls(value.lower())


# =============================================================================
# Human-Readable Units
# =============================================================================


def format_file_size(num_bytes: float) -> str:
    """Format a byte count (B, KB, MB, GB)."""
    if num_bytes < 1024:
        return f"{int(num_bytes)} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    if num_bytes < 1024 * 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):.1f} MB"
    return f"{num_bytes / (1024 * 1024 * 1024):.2f} GB"


def format_speed(bytes_per_second: float) -> str:
    """Format a transfer rate."""
    if bytes_per_second < 1024:
        return f"{bytes_per_second:.0f} B/s"
    if bytes_per_second < 1024 * 1024:
        return f"{bytes_per_second / 1024:.1f} KB/s"
    return f"{bytes_per_second / (1024 * 1024):.1f} MB/s"


def format_time_remaining(seconds: Optional[float]) -> str:
    """Format an ETA; sub-second values read as nearly done."""
    if seconds is None:
        return "Calculating..."
    if seconds < 1:
        return "Almost done..."
    if seconds < 60:
        return f"{round(seconds)}s remaining"
    minutes = int(seconds // 60)
    remaining_seconds = round(seconds % 60)
    return f"{minutes}m {remaining_seconds}s remaining"


# =============================================================================
# Table Output
# =============================================================================


def print_table(
    rows: Sequence[dict[str, Any]],
    columns: Sequence[str],
    *,
    title: str | None = None,
    column_labels: dict[str, str] | None = None,
) -> None:
    """Print data as a Rich table.

    Args:
        rows: List of dictionaries with data.
        columns: Column keys to display.
        title: Optional table title.
        column_labels: Optional mapping of column keys to display labels.
    """
    if not rows:
        console.print("[dim]No results[/dim]")
        return

    table = Table(title=title, show_header=True, header_style="bold")

    labels = column_labels or {}
    for col in columns:
        label = labels.get(col, col.replace("_", " ").title())
        table.add_column(label)

    for row in rows:
        values = []
        for col in columns:
            val = row.get(col, "")
            if val is None:
                val = ""
            elif isinstance(val, bool):
                val = "Yes" if val else "No"
            elif isinstance(val, (list, dict)):
                val = json.dumps(val)
            values.append(str(val))
        table.add_row(*values)

    console.print(table)


def print_key_value(
    data: dict[str, Any],
    *,
    title: str | None = None,
    key_labels: dict[str, str] | None = None,
) -> None:
    """Print key-value pairs in a formatted way.

    Args:
        data: Dictionary of key-value pairs.
        title: Optional title.
        key_labels: Optional mapping of keys to display labels.
    """
    if title:
        console.print(f"[bold]{title}[/bold]")

    labels = key_labels or {}
    max_key_len = (
        max(len(labels.get(k, k.replace("_", " ").title())) for k in data.keys()) if data else 0
    )

    for key, value in data.items():
        label = labels.get(key, key.replace("_", " ").title())
        if value is None:
            value = "[dim]-[/dim]"
        elif isinstance(value, bool):
            value = "[green]Yes[/green]" if value else "[red]No[/red]"
        elif isinstance(value, (list, dict)):
            value = json.dumps(value, indent=2)

        console.print(f"  {label:<{max_key_len}}  {value}")


# =============================================================================
# Upload Queue Table
# =============================================================================

_STATUS_STYLES = {
    TaskStatus.PENDING: "dim",
    TaskStatus.COMPRESSING: "cyan",
    TaskStatus.UPLOADING: "blue",
    TaskStatus.PAUSED: "yellow",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
}


def _task_detail(task: TaskSnapshot) -> str:
    if task.status == TaskStatus.UPLOADING:
        speed = format_speed(task.speed) if task.speed > 0 else "Calculating..."
        return f"{speed}, {format_time_remaining(task.time_remaining)}"
    if task.status == TaskStatus.PAUSED:
        return f"Paused at {task.progress}%"
    if task.status == TaskStatus.PENDING:
        return "Waiting to upload..."
    if task.status == TaskStatus.COMPRESSING:
        return "Compressing..."
    if task.status == TaskStatus.COMPLETED:
        if task.compressed_size is not None and task.compressed_size < task.original_size:
            return f"Uploaded (compressed to {format_file_size(task.compressed_size)})"
        return "Uploaded"
    return task.error or "Upload failed"


def build_task_table(tasks: Sequence[TaskSnapshot], *, title: str = "Upload Queue") -> Table:
    """Build a Rich table for the upload queue state."""
    completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    caption = f"{len(tasks)} {'file' if len(tasks) == 1 else 'files'}"
    if completed:
        caption = f"{caption}, {completed} completed"

    table = Table(title=title, caption=caption, show_header=True, header_style="bold")
    table.add_column("File", overflow="fold")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Progress", min_width=24)
    table.add_column("Detail", overflow="fold")

    for task in tasks:
        style = _STATUS_STYLES.get(task.status, "")
        bar = ProgressBar(total=100, completed=task.progress, width=16)
        progress = Table.grid(padding=(0, 1))
        progress.add_row(bar, f"{task.progress:>3}%")
        table.add_row(
            task.file_name,
            format_file_size(task.file_size),
            f"[{style}]{task.status.value}[/{style}]" if style else task.status.value,
            progress,
            _task_detail(task),
        )

    return table


# =============================================================================
# JSON Output
# =============================================================================


def print_json(data: Any, *, indent: int = 2) -> None:
    """Print data as JSON."""
    print(json.dumps(data, indent=indent, default=str))


# =============================================================================
# Unified Output
# =============================================================================


def print_output(
    data: Any,
    *,
    format: OutputFormat = OutputFormat.TABLE,
    columns: Sequence[str] | None = None,
    column_labels: dict[str, str] | None = None,
    title: str | None = None,
    quiet: bool = False,
    id_field: str = "id",
) -> None:
    """Print data in the specified format.

    Args:
        data: Data to print (dict, list, or scalar).
        format: Output format.
        columns: Columns for table format.
        column_labels: Labels for columns.
        title: Optional title.
        quiet: If True, only print IDs.
        id_field: Field to use for IDs in quiet mode.
    """
    if quiet:
        items = data if isinstance(data, list) else [data]
        for item in items:
            if isinstance(item, dict):
                print(item.get(id_field) or item.get("name") or "")
            else:
                print(item)
        return

    if format == OutputFormat.JSON:
        print_json(data)
        return

    if isinstance(data, list) and columns:
        print_table(data, columns, title=title, column_labels=column_labels)
    elif isinstance(data, dict):
        if columns:
            print_table([data], columns, title=title, column_labels=column_labels)
        else:
            print_key_value(data, title=title, key_labels=column_labels)
    else:
        print_json(data)


# =============================================================================
# Status Messages
# =============================================================================


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_warning(message: str) -> None:
    """Print warning message to stderr."""
    err_console.print(f"[yellow]Warning:[/yellow] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_info(message: str) -> None:
    console.print(f"[blue]Info:[/blue] {message}")
