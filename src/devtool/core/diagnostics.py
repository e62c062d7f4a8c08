"""Health checks behind ``devtool doctor``.

Two kinds of check run side by side:
    - settings checks (config file, prerequisite ordering)
    - one probe per built-in tool, running its version command
"""

from __future__ import annotations

import asyncio
import os
import shlex
import shutil
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from devtool.core.config import AppConfig
from devtool.core.result import Err, GraphError, Ok
from devtool.engine.graph import DependencyGraph
from devtool.tools.catalog import BUILTIN_UPDATERS, Updater, build_tools
from devtool.tools.runner import CommandRunner


@dataclass
class CheckResult:
    name: str
    status: str
    message: str


@dataclass
class ToolCheck:
    updater: Updater
    status: str
    version: str | None
    prerequisites: list[str] = field(default_factory=list)
    message: str | None = None


class SettingsCheck(ABC):
    name: str

    @abstractmethod
    async def run(self) -> CheckResult: ...


class ConfigFileCheck(SettingsCheck):
    name = "Config"

    def __init__(self, config: AppConfig, path: Path | None, error: str | None) -> None:
        self.config = config
        self.path = path
        self.error = error

    async def run(self) -> CheckResult:
        if self.error:
            return CheckResult(self.name, "error", self.error)
        if self.path is not None and not self.path.exists():
            return CheckResult(self.name, "ok", f"No config file at {self.path}; using defaults.")

        tools = self.config.tools
        log_dir = tools.log_dir.expanduser()
        if tools.keep_logs and log_dir.exists() and not os.access(log_dir, os.W_OK):
            return CheckResult(self.name, "warn", f"log_dir not writable: {log_dir}")
        return CheckResult(self.name, "ok", f"Loaded {self.path}.")


class PrerequisiteCheck(SettingsCheck):
    name = "Prerequisites"

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    async def run(self) -> CheckResult:
        try:
            DependencyGraph.build(build_tools(self.config.tools))
        except GraphError as exc:
            return CheckResult(self.name, "error", str(exc))

        known = {updater.tool_id for updater in BUILTIN_UPDATERS}
        mentioned = {
            name
            for tool_id, prerequisites in self.config.tools.prerequisites.items()
            for name in (tool_id, *prerequisites)
        }
        unknown = sorted(mentioned - known)
        if unknown:
            return CheckResult(
                self.name, "warn", "Unknown tool ids in prerequisites: " + ", ".join(unknown)
            )
        return CheckResult(self.name, "ok", "Prerequisites form a valid order.")


def select_updaters(names: Iterable[str] | None) -> list[Updater]:
    """Updaters matching ``names`` by id or binary; all of them when none match."""
    requested = {name.strip().lower() for name in names or ()}
    chosen = [
        updater
        for updater in BUILTIN_UPDATERS
        if updater.tool_id in requested or updater.binary in requested
    ]
    return chosen or list(BUILTIN_UPDATERS)


async def probe_tool(updater: Updater, prerequisites: list[str]) -> ToolCheck:
    path = shutil.which(updater.binary)
    if path is None:
        return ToolCheck(updater, "missing", None, prerequisites, "not installed")

    runner = CommandRunner(updater.tool_id)
    match await runner.run("version", shlex.join([path, *updater.version_args])):
        case Err(error):
            return ToolCheck(updater, "error", None, prerequisites, error.message)
        case Ok(output):
            lines = [line.strip() for line in output.output.splitlines() if line.strip()]
            first_line = lines[0] if lines else None
            if not output.ok:
                return ToolCheck(
                    updater, "error", first_line, prerequisites, "version command failed"
                )
            return ToolCheck(updater, "ok", first_line, prerequisites)


async def _run_doctor(updaters: list[Updater], config: AppConfig) -> list[ToolCheck]:
    prerequisites = config.tools.prerequisites
    return list(
        await asyncio.gather(
            *(probe_tool(u, list(prerequisites.get(u.tool_id, []))) for u in updaters)
        )
    )


async def _run_settings_checks(
    config: AppConfig, config_path: Path | None, config_error: str | None
) -> list[CheckResult]:
    checks: list[SettingsCheck] = [
        ConfigFileCheck(config, config_path, config_error),
        PrerequisiteCheck(config),
    ]
    return list(await asyncio.gather(*(check.run() for check in checks)))


async def run_diagnostics_suite(
    config: AppConfig,
    config_path: Path | None,
    tool_names: list[str] | None,
    config_error: str | None = None,
) -> tuple[list[CheckResult], list[ToolCheck]]:
    """Run the settings checks and the tool probes concurrently."""
    settings, tools = await asyncio.gather(
        _run_settings_checks(config, config_path, config_error),
        _run_doctor(select_updaters(tool_names), config),
    )
    return settings, tools


__all__ = [
    "CheckResult",
    "ToolCheck",
    "probe_tool",
    "run_diagnostics_suite",
    "select_updaters",
]
