from __future__ import annotations

import functools
import inspect
from collections.abc import Callable
from typing import Any, NoReturn, TypeVar

import typer
from rich.markup import escape

from devtool.core.config import ConfigError
from devtool.core.console import get_console, get_logger
from devtool.core.result import DevtoolError, GraphError

F = TypeVar("F", bound=Callable[..., Any])

logger = get_logger(__name__)

# Exit code for input the run cannot start with (bad tool set or ordering)
EXIT_INVALID = 2

_HANDLED = (DevtoolError, ConfigError, PermissionError)


def _exit_with(exc: Exception) -> NoReturn:
    logger.debug("Command aborted by %s", type(exc).__name__, exc_info=exc)
    get_console().print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(code=EXIT_INVALID if isinstance(exc, GraphError) else 1)


def handle_exceptions(func: F) -> F:
    """Turn devtool errors raised by a command into a message and exit code.

    GraphError exits with 2, every other handled error with 1. Anything
    else propagates with its traceback.
    """

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except _HANDLED as exc:
                _exit_with(exc)

        return async_wrapper  # type: ignore[return-value]

    @functools.wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except _HANDLED as exc:
            _exit_with(exc)

    return sync_wrapper  # type: ignore[return-value]


__all__ = ["EXIT_INVALID", "handle_exceptions"]
