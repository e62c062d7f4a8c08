"""Mise updater.

Compares ``mise ls --current`` before and after ``mise up``. When the
snapshots show no difference, ``name@x.y.z`` markers in the ``mise up``
output are used instead.
"""

from __future__ import annotations

from devtool.core.result import Err, Ok
from devtool.engine.executor import TaskContext
from devtool.engine.models import Failure, NoChange, Success, TaskOutcome
from devtool.tools.parsing import (
    details_from_markers,
    diff_versions,
    mise_markers,
    parse_mise_versions,
)
from devtool.tools.runner import CommandRunner

TOOL_ID = "mise"
LABEL = "Mise"
BINARY = "mise"
DESCRIPTION = "mise up for every managed runtime"
COMMANDS = ["mise ls --current", "mise up"]

INSTALL_MARKERS = ("install", "upgraded", "updated", "->", "→")


async def current_versions(runner: CommandRunner, step: str) -> dict[str, str]:
    match await runner.run(step, "mise ls --current"):
        case Ok(output) if output.ok:
            return parse_mise_versions(output.output)
    return {}


async def update(runner: CommandRunner, context: TaskContext) -> TaskOutcome:
    if context.dry_run:
        return NoChange("dry run: would run " + "; ".join(COMMANDS))

    progress = context.progress

    before = await current_versions(runner, "ls-before")
    progress.report(15)

    match await runner.run_checked("up", "mise up"):
        case Err(error):
            return Failure(error.message)
        case Ok(output):
            up_output = output.output
    progress.report(80)

    after = await current_versions(runner, "ls-after")
    progress.report(95)

    details = diff_versions(before, after) if before and after else []
    if not details:
        details = details_from_markers(mise_markers(up_output))
    if details:
        return Success(details)

    lowered = up_output.lower()
    if any(marker in lowered for marker in INSTALL_MARKERS):
        return Success([])
    return NoChange("all runtimes up to date")


__all__ = ["BINARY", "COMMANDS", "DESCRIPTION", "LABEL", "TOOL_ID", "current_versions", "update"]
