"""Shared console helpers for manifestgen.

Provides Rich-based status printing, stage headers, summary tables, the
execution-summary report and the progress sink the executor reports to.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.rule import Rule
from rich.table import Table

from manifestgen.manifest.models import ExecutionSummary

console = Console()


# ---------------------------------------------------------------------------
# Progress events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgressEvent:
    """A coarse progress notification from the executor.

    Attributes:
        stage: Executor state that just completed, e.g. ``"validated"``.
        message: Short human-readable detail.
        elapsed: Seconds since the execution started.
    """

    stage: str
    message: str
    elapsed: float


ProgressSink = Callable[[ProgressEvent], None]


def console_progress_sink(event: ProgressEvent) -> None:
    """Print a progress event as a dim status line."""
    console.print(
        f"[dim]{format_duration(event.elapsed):>8}[/dim]  "
        f"[cyan]{event.stage}[/cyan]  {event.message}"
    )


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Render an elapsed time for progress lines and the final status.

    Short runs keep a tenth of a second; anything over a minute is shown
    in whole units::

        0.42   -> "0.4s"    (a single value object)
        65.2   -> "1m 5s"   (a large feature run)
        3661.0 -> "1h 1m 1s"

    Negative values, which only show up with clock skew, render as ``0.0s``.
    """
    if seconds < 0:
        return "0.0s"
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    units = [f"{minutes}m", f"{secs}s"]
    if hours:
        units.insert(0, f"{hours}h")
    return " ".join(units)


def display_path(path: Path, root: Path | None = None) -> str:
    """Render *path* relative to *root* when it lies inside it."""
    if root is not None:
        try:
            return str(path.relative_to(root))
        except ValueError:
            pass
    return str(path)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_stage_header(title: str, color: str = "bright_cyan") -> None:
    """Print a full-width rule announcing a stage."""
    console.print()
    console.print(Rule(f"[bold {color}] {title} [/bold {color}]", style=color))
    console.print()


def print_summary_table(counts: dict[str, int], title: str) -> None:
    """Print per-outcome file counts, e.g. ``{"Created": 7, "Skipped": 1}``."""
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Outcome", style="dim", no_wrap=True)
    table.add_column("Files", justify="right")
    for outcome, count in counts.items():
        table.add_row(outcome, str(count))
    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Final status line for a run without task errors."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Status line for a run that stopped: bad input, guards, cancellation."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Status line for problems that did not stop the run."""
    console.print(f"[bold yellow]{message}[/bold yellow]")


def print_execution_summary(
    summary: ExecutionSummary,
    dry_run: bool,
    root: Path | None = None,
) -> None:
    """Print what an execution created, updated, skipped and noted."""
    if summary.is_empty() and not summary.errors:
        print_warning("No operations were scheduled.")
        return

    title = "Dry run" if dry_run else "Execution"
    print_summary_table(
        {
            "Created": len(summary.created),
            "Updated": len(summary.updated),
            "Skipped": len(summary.skipped),
            "Errors": len(summary.errors),
        },
        title=f"{title} summary",
    )

    if summary.created:
        console.print("[bold green]Created[/bold green]")
        for path in summary.created:
            console.print(f"  + {display_path(path, root)}")
    if summary.updated:
        console.print("[bold cyan]Updated[/bold cyan]")
        for path in summary.updated:
            console.print(f"  ~ {display_path(path, root)}")
    if summary.skipped:
        console.print("[bold yellow]Skipped[/bold yellow]")
        for path, reason in summary.skipped:
            console.print(f"  - {display_path(path, root)} [dim]({reason})[/dim]")
    if summary.notes:
        console.print("[bold]Notes[/bold]")
        for note in summary.notes:
            console.print(f"  * {note}", markup=False)
    if summary.errors:
        console.print("[bold red]Errors[/bold red]")
        for error in summary.errors:
            console.print(f"  ! {error}", markup=False)
    console.print()
