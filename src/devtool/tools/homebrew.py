"""Homebrew updater.

Steps: ``brew update``, snapshot outdated packages, ``brew upgrade``,
snapshot again, ``brew cleanup``. Packages that were outdated before the
upgrade and are not afterwards are reported as upgrades.
"""

from __future__ import annotations

from devtool.core.console import get_logger
from devtool.core.result import Err, Ok
from devtool.engine.executor import TaskContext
from devtool.engine.models import Failure, NoChange, Success, TaskOutcome
from devtool.tools.parsing import (
    OutdatedPackage,
    brew_upgraded,
    parse_brew_outdated_json,
    parse_brew_outdated_text,
)
from devtool.tools.runner import CommandRunner

logger = get_logger(__name__)

TOOL_ID = "homebrew"
LABEL = "Homebrew"
BINARY = "brew"
DESCRIPTION = "brew update, brew upgrade and brew cleanup"
COMMANDS = ["brew update", "brew upgrade", "brew cleanup"]

BREW_ENV = {
    "HOMEBREW_NO_PROGRESS": "1",
    "HOMEBREW_NO_ANALYTICS": "1",
    "HOMEBREW_NO_INSECURE_REDIRECT": "1",
    "HOMEBREW_NO_ENV_HINTS": "1",
}


async def outdated_packages(runner: CommandRunner, step: str) -> list[OutdatedPackage]:
    """Outdated formulae and casks; empty when neither output form parses."""
    match await runner.run(step, "brew outdated --json=v2", env=BREW_ENV):
        case Ok(output):
            packages = parse_brew_outdated_json(output.output)
            if packages is not None:
                return packages
            logger.debug("brew outdated --json output not parseable; trying text form")
        case Err(err):
            logger.debug("brew outdated --json could not start: %s", err)

    match await runner.run(f"{step}-text", "brew outdated --verbose", env=BREW_ENV):
        case Ok(output):
            return parse_brew_outdated_text(output.output)
        case Err(err):
            logger.debug("brew outdated could not start: %s", err)
    return []


async def update(runner: CommandRunner, context: TaskContext) -> TaskOutcome:
    if context.dry_run:
        return NoChange("dry run: would run " + "; ".join(COMMANDS))

    progress = context.progress

    match await runner.run_checked("update", "brew update --quiet", env=BREW_ENV):
        case Err(error):
            return Failure(error.message)
    progress.report(20)

    before = await outdated_packages(runner, "outdated-before")
    progress.report(35)

    match await runner.run_checked("upgrade", "brew upgrade --quiet", env=BREW_ENV):
        case Err(error):
            return Failure(error.message)
        case Ok(upgrade_output):
            upgraded_anything = "==> Upgrading" in upgrade_output.output
    progress.report(75)

    after = await outdated_packages(runner, "outdated-after") if before else []
    progress.report(85)

    match await runner.run_checked("cleanup", "brew cleanup --quiet", env=BREW_ENV):
        case Err(error):
            return Failure(error.message)
    progress.report(95)

    details = brew_upgraded(before, after)
    if details:
        return Success(details)
    if not before and not upgraded_anything:
        return NoChange("all packages up to date")
    # Upgrades happened but could not be attributed to versions
    return Success([])


__all__ = ["BINARY", "COMMANDS", "DESCRIPTION", "LABEL", "TOOL_ID", "outdated_packages", "update"]
