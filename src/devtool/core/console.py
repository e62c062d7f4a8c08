"""Rich consoles and logging for devtool.

Command output goes to ``console`` (stdout). Log records go to
``stderr_console`` so they never land inside the live progress table.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "devtool"

console = Console()
stderr_console = Console(stderr=True)


def _level_number(level: str | int) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.strip().upper())
    return number if isinstance(number, int) else logging.INFO


def setup_logging(level: str | int = logging.INFO, verbose: bool = False) -> logging.Logger:
    """Attach a RichHandler to the ``devtool`` logger and return it.

    Third-party libraries log through the root logger, which is held at
    WARNING unless ``verbose`` is set.
    """
    app_level = logging.DEBUG if verbose else _level_number(level)

    handler = RichHandler(
        console=stderr_console,
        markup=False,
        rich_tracebacks=True,
        show_path=verbose,
        log_time_format="[%X]",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.handlers[:] = [handler]
    app_logger.setLevel(app_level)
    app_logger.propagate = False
    return app_logger


def apply_color_mode(no_color: bool) -> None:
    """Switch color off (or back on) for both consoles."""
    for target in (console, stderr_console):
        target.no_color = no_color


def get_console(stderr: bool = False) -> Console:
    return stderr_console if stderr else console


def get_logger(name: str | None = None) -> logging.Logger:
    """Loggers outside the ``devtool`` namespace are nested under it."""
    if not name or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)
    if name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


__all__ = [
    "LOGGER_NAME",
    "apply_color_mode",
    "console",
    "get_console",
    "get_logger",
    "setup_logging",
    "stderr_console",
]
