"""Core shared infrastructure for devtool.

This package contains foundational utilities:
    - config: Application configuration management
    - console: Rich console output and logging
    - result: Result type and error hierarchy
    - registry: CLI command discovery
"""

from __future__ import annotations

from . import config, console

__all__ = ["config", "console"]
