"""Tests for the Rich progress table and summary rendering."""

from __future__ import annotations

from rich.console import Console

from devtool.engine.collector import ResultCollector
from devtool.engine.models import Failure, NoChange, Phase, Success, ToolProgress, UpgradeDetail
from devtool.engine.progress import EventKind, ProgressEvent
from devtool.ui.progress_view import CompactEventPrinter, LiveTableRenderer, render_progress_table
from devtool.ui.summary import format_counts, render_plan, render_summary
from tests.mocks.fake_executor import make_tool


def recording_console() -> Console:
    return Console(record=True, width=120, force_terminal=False)


def test_progress_table_rows() -> None:
    states = [
        ToolProgress("homebrew", "Homebrew", percent=35, phase=Phase.RUNNING, started_at=0.0),
        ToolProgress("rustup", "Rustup", percent=100, phase=Phase.SKIPPED, message="not installed"),
        ToolProgress("mise", "Mise"),
    ]
    console = recording_console()
    console.print(render_progress_table(states, now=2.0))
    text = console.export_text()
    assert "Homebrew" in text
    assert "35%" in text
    assert "2.0s" in text
    assert "skipped (not installed)" in text
    assert "pending" in text


def test_live_renderer_lifecycle() -> None:
    console = recording_console()
    renderer = LiveTableRenderer(console)
    states = [ToolProgress("a", "A")]
    renderer.render(states, 0.0)
    renderer.start(states)
    renderer.render([ToolProgress("a", "A", percent=100, phase=Phase.COMPLETED)], 1.0)
    renderer.stop()
    renderer.stop()
    assert "completed" in console.export_text()


def test_compact_printer_prints_terminal_phases_only() -> None:
    console = recording_console()
    printer = CompactEventPrinter(console)
    printer(
        ProgressEvent("homebrew", EventKind.PERCENT, percent=40),
        ToolProgress("homebrew", "Homebrew", percent=40, phase=Phase.RUNNING, started_at=1.0),
    )
    printer(
        ProgressEvent("homebrew", EventKind.FAILED, message="brew exploded"),
        ToolProgress(
            "homebrew",
            "Homebrew",
            percent=100,
            phase=Phase.FAILED,
            started_at=1.0,
            finished_at=3.5,
            message="brew exploded",
        ),
    )
    printer(
        ProgressEvent("rustup", EventKind.SKIPPED, message="not installed"),
        ToolProgress("rustup", "Rustup", percent=100, phase=Phase.SKIPPED, message="not installed"),
    )

    lines = console.export_text().splitlines()
    assert lines == ["failed Homebrew (2.5s): brew exploded", "skipped Rustup: not installed"]


def test_summary_rendering() -> None:
    tools = [make_tool("a"), make_tool("b"), make_tool("c")]
    collector = ResultCollector(tools)
    collector.record(
        ResultCollector.from_outcome(
            tools[0], Success([UpgradeDetail.upgrade("stable-x86_64", "1.75.0", "1.76.0")]), 3.2
        )
    )
    collector.record(ResultCollector.from_outcome(tools[1], NoChange(), 0.4))
    collector.record(ResultCollector.from_outcome(tools[2], Failure("exit [1]"), 1.0))
    summary = collector.summary(duration=3.5)

    console = recording_console()
    render_summary(summary, console)
    text = console.export_text()

    assert "[stable] stable-x86_64: 1.75.0 → 1.76.0" in text
    assert "exit [1]" in text
    assert "Finished with failures." in text
    assert format_counts(summary) == (
        "updated: 1, already latest: 1, skipped: 0, failed: 1 in 3.5s"
    )


def test_plan_lists_tools_with_prerequisites() -> None:
    console = recording_console()
    render_plan([make_tool("a"), make_tool("b", ["a"])], jobs=1, dry_run=True, console=console)
    text = console.export_text()
    assert "sequential" in text
    assert "(dry run)" in text
    assert "after a" in text
