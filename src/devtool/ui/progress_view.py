"""Rich live table renderer for the progress aggregator."""

from __future__ import annotations

from collections.abc import Sequence

from rich import box
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.progress_bar import ProgressBar
from rich.table import Table

from devtool.core.console import get_console
from devtool.engine.models import Phase, ToolProgress
from devtool.engine.progress import ProgressEvent

PHASE_STYLES: dict[Phase, str] = {
    Phase.PENDING: "dim",
    Phase.RUNNING: "cyan",
    Phase.COMPLETED: "green",
    Phase.FAILED: "red",
    Phase.SKIPPED: "yellow",
}


def render_progress_table(
    states: Sequence[ToolProgress], now: float | None = None, title: str = "Updating tools"
) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Progress", ratio=1)
    table.add_column("%", justify="right", no_wrap=True)
    table.add_column("Phase", no_wrap=True)
    table.add_column("Elapsed", justify="right", no_wrap=True)

    for state in states:
        style = PHASE_STYLES.get(state.phase, "white")
        bar = ProgressBar(
            total=100,
            completed=state.percent,
            complete_style=style if state.phase.is_terminal else "cyan",
            finished_style=style,
        )
        elapsed = state.elapsed(now) if now is not None else 0.0
        phase_text = state.phase.value
        if state.message and state.phase in (Phase.SKIPPED, Phase.FAILED):
            phase_text = f"{phase_text} ({state.message})"
        table.add_row(
            state.label,
            bar,
            f"{state.percent}%",
            f"[{style}]{escape(phase_text)}[/{style}]",
            f"{elapsed:.1f}s" if state.started_at is not None else "-",
        )
    return table


class LiveTableRenderer:
    """Draws one row per tool inside a Rich ``Live`` region.

    Refreshing is driven entirely by the aggregator's render loop, so
    ``auto_refresh`` is off and every redraw is explicit.
    """

    def __init__(self, console: Console | None = None, title: str = "Updating tools") -> None:
        self._console = console
        self._title = title
        self._live: Live | None = None

    def start(self, states: Sequence[ToolProgress]) -> None:
        self._live = Live(
            render_progress_table(states, title=self._title),
            console=self._console or get_console(),
            auto_refresh=False,
            transient=False,
        )
        self._live.start()

    def render(self, states: Sequence[ToolProgress], now: float) -> None:
        if self._live is None:
            return
        self._live.update(render_progress_table(states, now, title=self._title), refresh=True)

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None


class CompactEventPrinter:
    """Prints one line per tool when it reaches a terminal phase.

    Subscribe it to a ProgressAggregator running with a NullRenderer for
    output that suits logs and non-interactive terminals.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console

    def __call__(self, event: ProgressEvent, state: ToolProgress) -> None:
        if not state.phase.is_terminal:
            return
        style = PHASE_STYLES[state.phase]
        line = f"[{style}]{state.phase.value}[/{style}] {escape(state.label)}"
        if state.started_at is not None:
            line += f" ({state.elapsed(state.finished_at or state.started_at):.1f}s)"
        if state.message:
            line += f": {escape(state.message)}"
        (self._console or get_console()).print(line, highlight=False)


__all__ = ["CompactEventPrinter", "LiveTableRenderer", "PHASE_STYLES", "render_progress_table"]
