"""Built-in tool catalog and the executor that runs their updaters.

Key components:
- Updater: Static description of one built-in tool
- BUILTIN_UPDATERS: Homebrew, Rustup and Mise, in declaration order
- build_tools(): Tools for a run, with configured prerequisites applied
- BuiltinExecutor: TaskExecutor dispatching on tool id
"""

from __future__ import annotations

import shutil
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devtool.core.console import get_logger
from devtool.core.config import ToolsConfig
from devtool.engine.executor import TaskContext
from devtool.engine.models import Failure, TaskOutcome, Tool
from devtool.tools import homebrew, mise, rustup
from devtool.tools.runner import CommandRunner

logger = get_logger(__name__)

UpdateFn = Callable[[CommandRunner, TaskContext], Awaitable[TaskOutcome]]


@dataclass(frozen=True)
class Updater:
    tool_id: str
    label: str
    binary: str
    description: str
    commands: list[str]
    update: UpdateFn
    version_args: list[str] = field(default_factory=lambda: ["--version"])

    def detector(self) -> Callable[[], bool]:
        binary = self.binary

        def detect() -> bool:
            return shutil.which(binary) is not None

        return detect


BUILTIN_UPDATERS: list[Updater] = [
    Updater(
        tool_id=homebrew.TOOL_ID,
        label=homebrew.LABEL,
        binary=homebrew.BINARY,
        description=homebrew.DESCRIPTION,
        commands=homebrew.COMMANDS,
        update=homebrew.update,
    ),
    Updater(
        tool_id=rustup.TOOL_ID,
        label=rustup.LABEL,
        binary=rustup.BINARY,
        description=rustup.DESCRIPTION,
        commands=rustup.COMMANDS,
        update=rustup.update,
    ),
    Updater(
        tool_id=mise.TOOL_ID,
        label=mise.LABEL,
        binary=mise.BINARY,
        description=mise.DESCRIPTION,
        commands=mise.COMMANDS,
        update=mise.update,
    ),
]


def get_updater(tool_id: str) -> Updater | None:
    for updater in BUILTIN_UPDATERS:
        if updater.tool_id == tool_id:
            return updater
    return None


def build_tools(config: ToolsConfig, selected: Iterable[str] | None = None) -> list[Tool]:
    """Create the Tools for one run.

    Disabled tools, and tools outside ``selected`` when given, are left out;
    prerequisites pointing at a left-out tool are dropped with them.
    """
    wanted = {name.strip().lower() for name in selected} if selected else None
    disabled = set(config.disabled)
    chosen = [
        updater
        for updater in BUILTIN_UPDATERS
        if updater.tool_id not in disabled and (wanted is None or updater.tool_id in wanted)
    ]
    present = {updater.tool_id for updater in chosen}

    tools: list[Tool] = []
    for updater in chosen:
        prerequisites = config.prerequisites.get(updater.tool_id, [])
        dropped = [p for p in prerequisites if p not in present]
        if dropped:
            logger.debug("Ignoring prerequisites of %s not in this run: %s", updater.tool_id, dropped)
        tools.append(
            Tool(
                id=updater.tool_id,
                label=updater.label,
                prerequisites=[p for p in prerequisites if p in present],
                detect=updater.detector(),
                description=updater.description,
            )
        )
    return tools


def unknown_tools(names: Iterable[str]) -> list[str]:
    known = {updater.tool_id for updater in BUILTIN_UPDATERS}
    return [name for name in names if name.strip().lower() not in known]


class BuiltinExecutor:
    """TaskExecutor running the built-in updaters.

    Args:
        updaters: Updaters by tool id; defaults to BUILTIN_UPDATERS
        log_dir: Directory for per-command logs
        keep_logs: Keep a log file per command
    """

    def __init__(
        self,
        updaters: Mapping[str, Updater] | None = None,
        *,
        log_dir: Path | None = None,
        keep_logs: bool = False,
    ) -> None:
        self._updaters = dict(updaters) if updaters is not None else {
            updater.tool_id: updater for updater in BUILTIN_UPDATERS
        }
        self._log_dir = log_dir
        self._keep_logs = keep_logs

    async def execute(self, tool: Tool, context: TaskContext) -> TaskOutcome:
        updater = self._updaters.get(tool.id)
        if updater is None:
            return Failure(f"no updater registered for {tool.id}")
        runner = CommandRunner(tool.id, log_dir=self._log_dir, keep_logs=self._keep_logs)
        context.progress.report(5)
        return await updater.update(runner, context)


__all__ = [
    "BUILTIN_UPDATERS",
    "BuiltinExecutor",
    "Updater",
    "build_tools",
    "get_updater",
    "unknown_tools",
]
