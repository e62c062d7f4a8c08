"""Tests for the built-in updaters and the tool catalog, using a scripted runner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from devtool.core.config import ToolsConfig
from devtool.core.result import Err, Ok
from devtool.engine.executor import TaskContext
from devtool.engine.models import Failure, NoChange, Success, Tool
from devtool.engine.progress import EventKind, ProgressAggregator, ProgressEvent
from devtool.tools import homebrew, mise, rustup
from devtool.tools.catalog import BuiltinExecutor, Updater, build_tools, get_updater, unknown_tools
from devtool.tools.runner import CommandOutput, step_error


class ScriptedRunner:
    """Stands in for CommandRunner; replies per command, last reply repeats."""

    def __init__(self, replies: dict[str, list[tuple[int, str]]]) -> None:
        self.replies = {command: list(values) for command, values in replies.items()}
        self.commands: list[str] = []

    async def run(self, step: str, command: str, env: dict[str, str] | None = None):
        self.commands.append(command)
        queue = self.replies.get(command)
        if not queue:
            return Ok(CommandOutput(step, command, 127, f"sh: {command}: not found"))
        returncode, output = queue.pop(0) if len(queue) > 1 else queue[0]
        return Ok(CommandOutput(step, command, returncode, output))

    async def run_checked(self, step: str, command: str, env: dict[str, str] | None = None):
        match await self.run(step, command, env=env):
            case Ok(output) if not output.ok:
                return Err(step_error(output))
            case other:
                return other


def make_context(tool_id: str, dry_run: bool = False) -> tuple[TaskContext, ProgressAggregator]:
    aggregator = ProgressAggregator([Tool(id=tool_id, label=tool_id)])
    aggregator.post(ProgressEvent(tool_id, EventKind.STARTED))
    return TaskContext(dry_run=dry_run, progress=aggregator.reporter(tool_id)), aggregator


def brew_json(*packages: tuple[str, str, str]) -> str:
    return json.dumps(
        {
            "formulae": [
                {"name": name, "installed_versions": [old], "current_version": new}
                for name, old, new in packages
            ],
            "casks": [],
        }
    )


class TestHomebrew:
    @pytest.mark.asyncio
    async def test_reports_upgraded_packages(self) -> None:
        runner = ScriptedRunner(
            {
                "brew update --quiet": [(0, "Updated 2 taps")],
                "brew outdated --json=v2": [
                    (0, brew_json(("git", "2.42.0", "2.43.0"), ("node", "20.10.0", "20.11.0"))),
                    (0, brew_json(("node", "20.10.0", "20.11.0"))),
                ],
                "brew upgrade --quiet": [(0, "==> Upgrading git")],
                "brew cleanup --quiet": [(0, "")],
            }
        )
        context, aggregator = make_context("homebrew")

        outcome = await homebrew.update(runner, context)

        assert isinstance(outcome, Success)
        assert [d.display() for d in outcome.details] == ["git: 2.42.0 → 2.43.0"]
        assert aggregator.state("homebrew").percent == 95

    @pytest.mark.asyncio
    async def test_nothing_outdated_is_no_change(self) -> None:
        runner = ScriptedRunner(
            {
                "brew update --quiet": [(0, "Already up-to-date.")],
                "brew outdated --json=v2": [(0, brew_json())],
                "brew upgrade --quiet": [(0, "")],
                "brew cleanup --quiet": [(0, "")],
            }
        )
        context, _ = make_context("homebrew")

        outcome = await homebrew.update(runner, context)

        assert outcome == NoChange("all packages up to date")
        assert runner.commands.count("brew outdated --json=v2") == 1

    @pytest.mark.asyncio
    async def test_text_fallback_when_json_unavailable(self) -> None:
        runner = ScriptedRunner(
            {
                "brew update --quiet": [(0, "")],
                "brew outdated --json=v2": [(1, "Error: invalid option: --json=v2")],
                "brew outdated --verbose": [(0, "wget (1.21.3) < 1.21.4"), (0, "")],
                "brew upgrade --quiet": [(0, "==> Upgrading wget")],
                "brew cleanup --quiet": [(0, "")],
            }
        )
        context, _ = make_context("homebrew")

        outcome = await homebrew.update(runner, context)

        assert isinstance(outcome, Success)
        assert [d.name for d in outcome.details] == ["wget"]

    @pytest.mark.asyncio
    async def test_failed_step_is_failure(self) -> None:
        runner = ScriptedRunner({"brew update --quiet": [(1, "Error: no network")]})
        context, _ = make_context("homebrew")

        outcome = await homebrew.update(runner, context)

        assert outcome == Failure("update failed with exit code 1: Error: no network")
        assert runner.commands == ["brew update --quiet"]

    @pytest.mark.asyncio
    async def test_dry_run_runs_nothing(self) -> None:
        runner = ScriptedRunner({})
        context, _ = make_context("homebrew", dry_run=True)

        outcome = await homebrew.update(runner, context)

        assert isinstance(outcome, NoChange)
        assert outcome.message.startswith("dry run: would run brew update")
        assert runner.commands == []


STABLE = "stable-x86_64-unknown-linux-gnu"


class TestRustup:
    @pytest.mark.asyncio
    async def test_updated_toolchain_reported(self) -> None:
        runner = ScriptedRunner(
            {
                "rustup toolchain list": [(0, f"{STABLE} (default)\n")],
                f"rustup run {STABLE} rustc --version": [
                    (0, "rustc 1.75.0 (82e1608df 2023-12-21)"),
                    (0, "rustc 1.76.0 (07dca489a 2024-02-04)"),
                ],
                "rustup update": [(0, f"  {STABLE} updated - rustc 1.76.0 (from rustc 1.75.0)")],
            }
        )
        context, _ = make_context("rustup")

        outcome = await rustup.update(runner, context)

        assert isinstance(outcome, Success)
        assert [d.enhanced_display() for d in outcome.details] == [
            f"[stable] {STABLE}: 1.75.0 → 1.76.0"
        ]

    @pytest.mark.asyncio
    async def test_unchanged_toolchains(self) -> None:
        runner = ScriptedRunner(
            {
                "rustup toolchain list": [(0, f"{STABLE} (default)\n")],
                f"rustup run {STABLE} rustc --version": [(0, "rustc 1.76.0 (07dca489a 2024-02-04)")],
                "rustup update": [(0, f"  {STABLE} unchanged - rustc 1.76.0")],
            }
        )
        context, _ = make_context("rustup")

        assert await rustup.update(runner, context) == NoChange("all toolchains unchanged")

    @pytest.mark.asyncio
    async def test_update_failure(self) -> None:
        runner = ScriptedRunner(
            {
                "rustup toolchain list": [(0, "")],
                "rustup update": [(1, "error: could not download")],
            }
        )
        context, _ = make_context("rustup")

        outcome = await rustup.update(runner, context)

        assert isinstance(outcome, Failure)
        assert "could not download" in outcome.error


class TestMise:
    @pytest.mark.asyncio
    async def test_version_diff(self) -> None:
        runner = ScriptedRunner(
            {
                "mise ls --current": [(0, "node 20.10.0\npython 3.12.1\n"), (0, "node 20.11.0\npython 3.12.1\n")],
                "mise up": [(0, "")],
            }
        )
        context, _ = make_context("mise")

        outcome = await mise.update(runner, context)

        assert isinstance(outcome, Success)
        assert [d.display() for d in outcome.details] == ["node: 20.10.0 → 20.11.0"]

    @pytest.mark.asyncio
    async def test_marker_fallback(self) -> None:
        runner = ScriptedRunner(
            {
                "mise ls --current": [(1, "")],
                "mise up": [(0, "mise python@3.12.1 -> python@3.12.2")],
            }
        )
        context, _ = make_context("mise")

        outcome = await mise.update(runner, context)

        assert isinstance(outcome, Success)
        assert [d.display() for d in outcome.details] == ["python: 3.12.1 → 3.12.2"]

    @pytest.mark.asyncio
    async def test_nothing_to_do(self) -> None:
        runner = ScriptedRunner(
            {"mise ls --current": [(0, "node 20.11.0\n")], "mise up": [(0, "")]}
        )
        context, _ = make_context("mise")

        assert await mise.update(runner, context) == NoChange("all runtimes up to date")

    @pytest.mark.asyncio
    async def test_up_failure(self) -> None:
        runner = ScriptedRunner({"mise ls --current": [(0, "")], "mise up": [(2, "mise ERROR boom")]})
        context, _ = make_context("mise")

        outcome = await mise.update(runner, context)

        assert outcome == Failure("up failed with exit code 2: mise ERROR boom")


class TestCatalog:
    def test_default_tools_and_prerequisites(self) -> None:
        tools = build_tools(ToolsConfig())
        assert [t.id for t in tools] == ["homebrew", "rustup", "mise"]
        assert tools[2].prerequisites == ["homebrew"]
        assert tools[0].describe() == homebrew.DESCRIPTION

    def test_disabled_tool_drops_its_prerequisite_edges(self) -> None:
        tools = build_tools(ToolsConfig(disabled=["Homebrew"]))
        assert [t.id for t in tools] == ["rustup", "mise"]
        assert tools[1].prerequisites == []

    def test_selection(self) -> None:
        tools = build_tools(ToolsConfig(), ["MISE", "rustup"])
        assert [t.id for t in tools] == ["rustup", "mise"]

    def test_unknown_tools(self) -> None:
        assert unknown_tools(["homebrew", "cargo", " Mise "]) == ["cargo"]

    def test_get_updater(self) -> None:
        updater = get_updater("rustup")
        assert updater is not None
        assert updater.binary == "rustup"
        assert get_updater("apt") is None

    def test_detector_uses_path_lookup(self, monkeypatch: pytest.MonkeyPatch) -> None:
        import devtool.tools.catalog as catalog

        monkeypatch.setattr(catalog.shutil, "which", lambda name: None)
        assert build_tools(ToolsConfig())[0].detect() is False
        monkeypatch.setattr(catalog.shutil, "which", lambda name: f"/usr/bin/{name}")
        assert build_tools(ToolsConfig())[0].detect() is True


class TestBuiltinExecutor:
    @pytest.mark.asyncio
    async def test_unregistered_tool_fails(self) -> None:
        executor = BuiltinExecutor({})
        context, _ = make_context("ghost")
        outcome = await executor.execute(Tool(id="ghost", label="Ghost"), context)
        assert outcome == Failure("no updater registered for ghost")

    @pytest.mark.asyncio
    async def test_dispatches_to_updater(self, tmp_path: Path) -> None:
        seen: list[str] = []

        async def fake_update(runner, context):
            seen.append(runner.tool_id)
            assert runner.log_dir == tmp_path
            return Success()

        updater = Updater(
            tool_id="demo",
            label="Demo",
            binary="demo",
            description="demo update",
            commands=["demo up"],
            update=fake_update,
        )
        executor = BuiltinExecutor({"demo": updater}, log_dir=tmp_path, keep_logs=True)
        context, aggregator = make_context("demo")

        outcome = await executor.execute(Tool(id="demo", label="Demo"), context)

        assert outcome == Success()
        assert seen == ["demo"]
        assert aggregator.state("demo").percent == 5
