from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import typer
from rich.markup import escape

from devtool import __version__
from devtool.core.console import console
from devtool.core.decorators import EXIT_INVALID, handle_exceptions
from devtool.core.result import GraphError
from devtool.engine.graph import DependencyGraph
from devtool.engine.models import Summary, Tool
from devtool.engine.progress import NullRenderer, ProgressAggregator
from devtool.engine.scheduler import ParallelScheduler
from devtool.tools.catalog import BuiltinExecutor, build_tools, unknown_tools
from devtool.ui.progress_view import CompactEventPrinter, LiveTableRenderer
from devtool.ui.summary import render_banner, render_plan, render_summary

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


@dataclass
class UpdateOptions:
    jobs: int | None = None
    sequential: bool = False
    dry_run: bool = False
    keep_logs: bool = False
    no_banner: bool = False
    compact: bool = False
    tools: list[str] = field(default_factory=list)


def exit_code_for(summary: Summary) -> int:
    if summary.cancelled:
        return EXIT_CANCELLED
    if summary.has_failures:
        return EXIT_FAILED
    return EXIT_OK


async def _run_scheduler(
    state: Any, tools: list[Tool], jobs: int, dry_run: bool, keep_logs: bool, compact: bool
) -> Summary:
    config = state.config
    executor = BuiltinExecutor(log_dir=config.tools.log_dir, keep_logs=keep_logs)
    progress = ProgressAggregator(
        tools,
        NullRenderer() if compact else LiveTableRenderer(console),
        refresh_per_second=config.ui.refresh_per_second,
    )
    if compact:
        progress.subscribe(CompactEventPrinter(console))
    scheduler = ParallelScheduler(executor, progress, grace_period=config.scheduler.grace_period)

    loop = asyncio.get_running_loop()
    lifecycle = state.lifecycle
    lifecycle.attach(scheduler)
    lifecycle.register_signal_handlers(loop)
    try:
        async with progress:
            return await scheduler.run(tools, max_concurrency=jobs, dry_run=dry_run)
    finally:
        lifecycle.remove_signal_handlers(loop)
        lifecycle.detach()


def run_update_command(state: Any, options: UpdateOptions) -> int:
    """Plan, run and summarize one update; returns the process exit code."""
    config = state.config
    jobs = 1 if options.sequential else (options.jobs or config.scheduler.jobs)
    dry_run = options.dry_run or config.dry_run
    keep_logs = options.keep_logs or config.tools.keep_logs
    compact = options.compact or config.ui.compact

    unknown = unknown_tools(options.tools)
    if unknown:
        console.print(f"[red]Unknown tool(s): {escape(', '.join(unknown))}[/red]")
        return EXIT_INVALID

    tools = build_tools(config.tools, options.tools or None)
    if not tools:
        console.print("[yellow]No tools selected; nothing to do.[/yellow]")
        return EXIT_OK

    try:
        DependencyGraph.build(tools)
    except GraphError as exc:
        console.print(f"[red]Invalid tool order:[/red] {escape(str(exc))}")
        return EXIT_INVALID

    if config.ui.show_banner and not options.no_banner:
        render_banner(__version__, console)
    render_plan(tools, jobs, dry_run, console)

    summary = asyncio.run(_run_scheduler(state, tools, jobs, dry_run, keep_logs, compact))
    render_summary(summary, console)
    return exit_code_for(summary)


@handle_exceptions
def update(
    ctx: typer.Context,
    jobs: int | None = typer.Option(
        None, "--jobs", "-j", min=1, help="Maximum tools updated at once (default from config)."
    ),
    sequential: bool = typer.Option(False, "--sequential", help="Update one tool at a time."),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Show what would run without running it."
    ),
    keep_logs: bool = typer.Option(False, "--keep-logs", help="Keep a log file per command."),
    no_banner: bool = typer.Option(False, "--no-banner", help="Do not print the start banner."),
    compact: bool = typer.Option(
        False, "--compact", help="Print one line per finished tool instead of a live table."
    ),
    tool: list[str] | None = typer.Option(
        None, "--tool", "-t", help="Update only this tool (repeatable)."
    ),
) -> None:
    """Update every installed tool in parallel with a live progress table."""
    options = UpdateOptions(
        jobs=jobs,
        sequential=sequential,
        dry_run=dry_run,
        keep_logs=keep_logs,
        no_banner=no_banner,
        compact=compact,
        tools=list(tool or []),
    )
    code = run_update_command(ctx.obj, options)
    if code != EXIT_OK:
        raise typer.Exit(code=code)
