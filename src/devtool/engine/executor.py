"""Boundary between the scheduler and the code that actually updates a tool."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from devtool.engine.models import TaskOutcome, Tool
from devtool.engine.progress import ProgressReporter


@dataclass(frozen=True)
class TaskContext:
    """Per-dispatch context injected by the scheduler.

    Attributes:
        dry_run: True when no side effects may happen
        progress: Reporter bound to the dispatched tool
    """

    dry_run: bool
    progress: ProgressReporter


@runtime_checkable
class TaskExecutor(Protocol):
    """Runs one tool's update and returns its outcome.

    Implementations return failures as ``Failure`` values and capture all
    process output themselves; nothing may be written to the terminal.
    """

    async def execute(self, tool: Tool, context: TaskContext) -> TaskOutcome: ...


__all__ = ["TaskContext", "TaskExecutor"]
