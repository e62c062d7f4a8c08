"""Concrete tool updaters and their command runner.

This package contains:
    - runner: Async shell command runner with captured output
    - parsing: Pure parsers for updater output
    - homebrew, rustup, mise: Built-in updaters
    - catalog: Built-in tool catalog and BuiltinExecutor
"""

from __future__ import annotations

from devtool.tools.catalog import BUILTIN_UPDATERS, BuiltinExecutor, build_tools
from devtool.tools.runner import CommandOutput, CommandRunner

__all__ = [
    "BUILTIN_UPDATERS",
    "BuiltinExecutor",
    "CommandOutput",
    "CommandRunner",
    "build_tools",
]
