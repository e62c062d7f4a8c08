from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console
from typer.testing import CliRunner

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
for entry in (SRC, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

import devtool.commands.doctor as doctor_cmd  # noqa: E402
import devtool.commands.update as update_cmd  # noqa: E402
import devtool.core.console as core_console  # noqa: E402
import devtool.main as devtool_main  # noqa: E402

# Modules that bound the shared console at import time
_CONSOLE_HOLDERS = (core_console, devtool_main, update_cmd, doctor_cmd)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def ensure_commands_registered() -> None:
    devtool_main._register_commands()


@pytest.fixture(autouse=True)
def isolate_config(tmp_path: Path, monkeypatch: Any) -> Path:
    """Load settings from an empty temp path with no DEVTOOL_* overrides."""
    for key in [name for name in os.environ if name.startswith("DEVTOOL_")]:
        monkeypatch.delenv(key)
    cfg_path = tmp_path / "config.toml"
    monkeypatch.setenv("DEVTOOL_CONFIG", str(cfg_path))
    return cfg_path


@pytest.fixture(autouse=True)
def capture_console(monkeypatch: Any) -> Console:
    test_console = Console(record=True, width=120)
    for module in _CONSOLE_HOLDERS:
        monkeypatch.setattr(module, "console", test_console)
    return test_console
