"""Ok/Err results for command boundaries, and the devtool error hierarchy.

Subprocess helpers return a Result instead of raising, so an updater can
``match`` on the outcome of each step:

    match await runner.run_checked("update", "brew update"):
        case Err(error):
            return Failure(str(error))
        case Ok(output):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        """Raise the carried error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self


Result = Ok[T] | Err[E]


class DevtoolError(Exception):
    """Base for every error devtool raises on purpose.

    ``context`` holds key/value details appended to ``str(error)``.
    """

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} [{details}]"


class GraphError(DevtoolError):
    """The tool set cannot be ordered."""


class CycleError(GraphError):
    """Prerequisites loop back on themselves.

    Attributes:
        cycle: Closed path of tool ids, first element repeated at the end.
    """

    def __init__(self, cycle: list[str]) -> None:
        super().__init__("Cycle detected: " + " -> ".join(cycle))
        self.cycle = cycle


class UnknownToolError(GraphError):
    """A prerequisite names a tool outside the tool set."""


class DuplicateToolError(GraphError):
    """Two tools share an id."""


class ResultConflictError(DevtoolError):
    """A second result was recorded for the same tool."""


class ToolExecutionError(DevtoolError):
    """An external command could not be started or exited non-zero."""


__all__ = [
    "CycleError",
    "DevtoolError",
    "DuplicateToolError",
    "Err",
    "GraphError",
    "Ok",
    "Result",
    "ResultConflictError",
    "ToolExecutionError",
    "UnknownToolError",
]
