from __future__ import annotations

from pathlib import Path
from typing import Any

import click
from typer.main import get_command
from typer.testing import CliRunner

import devtool.core.diagnostics as diagnostics
from devtool import __version__
from devtool.main import app
from devtool.tools.catalog import get_updater

runner = CliRunner()


def test_app_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_doctor_mocked(monkeypatch: Any) -> None:
    updater = get_updater("homebrew")
    assert updater is not None
    fake = diagnostics.ToolCheck(
        updater=updater, status="ok", version="Homebrew 4.2.0", prerequisites=[]
    )

    async def fake_run(_updaters: Any, _config: Any) -> list[diagnostics.ToolCheck]:
        return [fake]

    monkeypatch.setattr(diagnostics, "_run_doctor", fake_run)
    result = runner.invoke(app, ["doctor"])
    assert result.exit_code == 0
    assert "Homebrew 4.2.0" in result.stdout
    assert "Prerequisites" in result.stdout


def test_doctor_reports_missing_tools(monkeypatch: Any) -> None:
    monkeypatch.setattr(diagnostics.shutil, "which", lambda name: None)
    result = runner.invoke(app, ["doctor", "--tool", "rustup"])
    assert result.exit_code == 0
    assert "missing" in result.stdout
    assert "Rustup" in result.stdout


def test_doctor_flags_cycles(isolate_config: Path, monkeypatch: Any) -> None:
    isolate_config.write_text(
        '[tools.prerequisites]\nrustup = ["mise"]\nmise = ["rustup"]\n', encoding="utf-8"
    )
    monkeypatch.setattr(diagnostics.shutil, "which", lambda name: None)
    result = runner.invoke(app, ["doctor"])
    assert result.exit_code == 0
    assert "Cycle detected" in result.stdout


def test_all_commands_have_help() -> None:
    """Every registered command, discovered or built in, renders its help."""
    click_app = get_command(app)
    if isinstance(click_app, click.Group):
        assert {"update", "doctor", "config", "version"} <= set(click_app.commands)
        for name in click_app.commands:
            result = runner.invoke(app, [name, "--help"])
            assert result.exit_code == 0, name
            assert "Usage:" in result.stdout


def test_config_command_shows_sources(isolate_config: Path) -> None:
    isolate_config.write_text("[scheduler]\njobs = 2\n", encoding="utf-8")
    result = runner.invoke(app, ["config"], env={"DEVTOOL_UI__SHOW_BANNER": "false"})
    assert result.exit_code == 0
    assert "scheduler.jobs" in result.stdout
    assert "File loaded: yes" in result.stdout
    assert "ui.show_banner" in result.stdout


def test_broken_config_enters_safe_mode(isolate_config: Path) -> None:
    isolate_config.write_text("[scheduler\n", encoding="utf-8")
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert "Safe Mode" in result.stdout
