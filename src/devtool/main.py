from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from types import FrameType

import typer
from rich import box
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .commands.update import UpdateOptions, run_update_command
from .core.config import AppConfig, ConfigLoadResult, load_config
from .core.console import apply_color_mode, console, setup_logging
from .core.registry import discover_commands
from .engine.scheduler import ParallelScheduler

app = typer.Typer(help="devtool: update Homebrew, Rustup and Mise in parallel.")
logger = logging.getLogger(__name__)

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ApplicationLifecycle:
    """Signal handling for one CLI invocation.

    While a scheduler is attached, the first SIGINT or SIGTERM cancels it
    and a second one exits immediately with ``128 + signum``.
    """

    def __init__(self) -> None:
        self._shutdown_requested: bool = False
        self._scheduler: ParallelScheduler | None = None

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    def attach(self, scheduler: ParallelScheduler) -> None:
        self._scheduler = scheduler

    def detach(self) -> None:
        self._scheduler = None

    def handle_shutdown(self, signum: int, frame: FrameType | None = None) -> None:
        if self._shutdown_requested or self._scheduler is None:
            console.print("\n[red]Force exit - child processes may still be running.[/red]")
            raise SystemExit(128 + signum)

        self._shutdown_requested = True
        console.print("\n[yellow]Cancelling... press Ctrl+C again to force exit.[/yellow]")
        self._scheduler.cancel()

    def register_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route SIGINT/SIGTERM through the event loop to handle_shutdown."""
        for sig in _SIGNALS:
            try:
                loop.add_signal_handler(sig, self.handle_shutdown, int(sig))
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no add_signal_handler
                signal.signal(sig, self.handle_shutdown)

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in _SIGNALS:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, signal.SIG_DFL)


@dataclass
class AppState:
    """Per-invocation state handed to every command through ``ctx.obj``."""

    config: AppConfig
    config_meta: ConfigLoadResult
    logger: logging.Logger
    lifecycle: ApplicationLifecycle = field(default_factory=ApplicationLifecycle)


def _safe_mode_panel(meta: ConfigLoadResult) -> Panel:
    body = Text.assemble(
        ("Configuration ignored, running with defaults\n\n", "bold red"),
        (f"{meta.path}\n", "cyan"),
        (meta.error or "", ""),
    )
    return Panel(body, title="Safe Mode", border_style="red")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Config file to load (TOML, or JSON by suffix)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what each tool would do and run nothing."
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output."),
) -> None:
    """Update Homebrew, Rustup and Mise. With no command, runs ``update``."""
    apply_color_mode(no_color)
    settings, meta = load_config(config_path=config)
    if dry_run:
        settings = settings.model_copy(update={"dry_run": True})

    app_logger = setup_logging(level=settings.ui.log_level, verbose=verbose)
    ctx.obj = AppState(config=settings, config_meta=meta, logger=app_logger)

    if meta.error:
        console.print(_safe_mode_panel(meta))
    else:
        app_logger.debug(
            "Settings from %s, env overrides: %s",
            meta.path,
            ", ".join(sorted(meta.env_overrides)) or "none",
        )

    if ctx.invoked_subcommand is None:
        raise typer.Exit(code=run_update_command(ctx.obj, UpdateOptions()))


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Print every setting in effect and where the values were read from."""
    state: AppState = ctx.obj
    meta = state.config_meta

    table = Table(title="Settings", box=box.SIMPLE, expand=True)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_column("From", style="dim", no_wrap=True)
    for key, value in state.config.flattened():
        origin = "env" if key in meta.env_overrides else ""
        table.add_row(key, escape(str(value)), origin)
    console.print(table)

    loaded = "yes" if meta.file_loaded else "no (using defaults + env)"
    lines = [f"Path: {meta.path}", f"File loaded: {loaded}"]
    if meta.env_overrides:
        lines.append("Env overrides: " + ", ".join(sorted(meta.env_overrides)))
    console.print(Panel("\n".join(lines), title="Config source", box=box.SIMPLE))


@app.command("version")
def show_version() -> None:
    """Print the devtool version."""
    console.print(__version__)


def _register_commands() -> None:
    commands_path = Path(__file__).resolve().parent / "commands"
    registered = {command.name for command in app.registered_commands}

    for spec in discover_commands(commands_path):
        if spec.name in registered:
            continue
        app.command(spec.name)(spec.handler)


def _register_commands_with_timing() -> None:
    started = perf_counter()
    _register_commands()
    logger.debug("Registered commands in %.1f ms", (perf_counter() - started) * 1000)


_register_commands_with_timing()


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
