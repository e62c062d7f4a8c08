"""Rustup updater.

Snapshots the rustc version of every installed toolchain, runs
``rustup update`` and snapshots again unless rustup reports every toolchain
unchanged.
"""

from __future__ import annotations

import shlex

from devtool.core.console import get_logger
from devtool.core.result import Err, Ok
from devtool.engine.executor import TaskContext
from devtool.engine.models import Failure, NoChange, Success, TaskOutcome
from devtool.tools.parsing import (
    diff_versions,
    extract_rust_version,
    parse_toolchain_list,
    rustup_unchanged,
)
from devtool.tools.runner import CommandRunner

logger = get_logger(__name__)

TOOL_ID = "rustup"
LABEL = "Rustup"
BINARY = "rustup"
DESCRIPTION = "rustup update for every installed toolchain"
COMMANDS = ["rustup update"]


async def toolchain_versions(runner: CommandRunner, step: str) -> dict[str, str]:
    """Map each installed toolchain to its rustc version."""
    versions: dict[str, str] = {}
    match await runner.run(f"{step}-list", "rustup toolchain list"):
        case Ok(output) if output.ok:
            toolchains = parse_toolchain_list(output.output)
        case _:
            logger.debug("rustup toolchain list failed; no version snapshot")
            return versions

    for toolchain in toolchains:
        command = f"rustup run {shlex.quote(toolchain)} rustc --version"
        match await runner.run(f"{step}-{toolchain}", command):
            case Ok(output):
                version = extract_rust_version(output.output)
                if version is not None:
                    versions[toolchain] = version
            case Err(err):
                logger.debug("Could not read rustc version for %s: %s", toolchain, err)
    return versions


async def update(runner: CommandRunner, context: TaskContext) -> TaskOutcome:
    if context.dry_run:
        return NoChange("dry run: would run " + "; ".join(COMMANDS))

    progress = context.progress

    before = await toolchain_versions(runner, "versions-before")
    progress.report(15)

    match await runner.run_checked("update", "rustup update"):
        case Err(error):
            return Failure(error.message)
        case Ok(output):
            unchanged = rustup_unchanged(output.output)
    progress.report(80)

    if unchanged:
        return NoChange("all toolchains unchanged")

    after = await toolchain_versions(runner, "versions-after")
    progress.report(95)
    # Toolchains that disappeared are not reported
    return Success(diff_versions(before, after))


__all__ = ["BINARY", "COMMANDS", "DESCRIPTION", "LABEL", "TOOL_ID", "toolchain_versions", "update"]
