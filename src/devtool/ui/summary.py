"""Rendering of the run plan and the final summary."""

from __future__ import annotations

from collections.abc import Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from devtool.core.console import get_console
from devtool.engine.models import Classification, Summary, Tool

STATUS_STYLES: dict[Classification, str] = {
    Classification.UPDATED: "green",
    Classification.ALREADY_LATEST: "blue",
    Classification.SKIPPED: "yellow",
    Classification.FAILED: "red",
}

STATUS_LABELS: dict[Classification, str] = {
    Classification.UPDATED: "updated",
    Classification.ALREADY_LATEST: "already latest",
    Classification.SKIPPED: "skipped",
    Classification.FAILED: "failed",
}


def render_banner(version: str, console: Console | None = None) -> None:
    out = console or get_console()
    out.print(
        Panel(
            f"[bold]devtool[/bold] {version}\nUpdate Homebrew, Rustup and Mise in one go.",
            box=box.ROUNDED,
            border_style="cyan",
        )
    )


def render_plan(
    tools: Sequence[Tool], jobs: int, dry_run: bool, console: Console | None = None
) -> None:
    out = console or get_console()
    mode = "sequential" if jobs == 1 else f"parallel, up to {jobs} at once"
    header = f"Updating {len(tools)} tool(s) ({mode})"
    if dry_run:
        header += " [yellow](dry run)[/yellow]"
    out.print(header)
    for index, tool in enumerate(tools, start=1):
        after = f" [dim](after {', '.join(tool.prerequisites)})[/dim]" if tool.prerequisites else ""
        out.print(f"  {index}) {tool.label}: {tool.describe()}{after}")


def format_counts(summary: Summary) -> str:
    parts = [
        f"{STATUS_LABELS[classification]}: {summary.counts.get(classification, 0)}"
        for classification in Classification
    ]
    return ", ".join(parts) + f" in {summary.duration:.1f}s"


def render_summary(summary: Summary, console: Console | None = None) -> None:
    """Print the results table, per-tool upgrade details and the counts line."""
    out = console or get_console()

    table = Table(title="Update summary", box=box.SIMPLE, expand=True)
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Duration", justify="right", no_wrap=True)
    table.add_column("Reason", style="white")

    for result in summary.results:
        style = STATUS_STYLES[result.classification]
        table.add_row(
            result.label,
            f"[{style}]{STATUS_LABELS[result.classification]}[/{style}]",
            f"{result.elapsed:.1f}s",
            Text(result.reason or ""),
        )
    out.print(table)

    for result in summary.results:
        if not result.details:
            continue
        lines = "\n".join(detail.enhanced_display() for detail in result.details)
        out.print(
            Panel(
                Text(lines),
                title=f"{result.label} upgrades ({len(result.details)})",
                box=box.SIMPLE,
                border_style="green",
            )
        )

    counts = format_counts(summary)
    if summary.cancelled:
        out.print(f"[yellow]Cancelled.[/yellow] {counts}")
    elif summary.has_failures:
        out.print(f"[red]Finished with failures.[/red] {counts}")
    else:
        out.print(f"[green]Done.[/green] {counts}")


__all__ = ["format_counts", "render_banner", "render_plan", "render_summary"]
