"""Command discovery for the Typer app.

Each module in ``devtool.commands`` exposes its command callables under the
names listed in ``COMMAND_TABLE``. A module that fails to import is logged
and skipped so the remaining commands stay usable.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

logger = logging.getLogger(__name__)

# module stem -> [(command name, attribute)]
COMMAND_TABLE: dict[str, list[tuple[str, str]]] = {
    "doctor": [("doctor", "doctor")],
    "update": [("update", "update")],
}


@dataclass(frozen=True)
class CommandSpec:
    name: str
    handler: Callable[..., None]


def _load(package: str, stem: str) -> ModuleType | None:
    try:
        return importlib.import_module(f"{package}.{stem}")
    except ImportError as exc:
        logger.error("Skipping command module %s: %s", stem, exc)
        return None


def _specs_for(stem: str, module: ModuleType) -> Iterator[CommandSpec]:
    for command_name, attribute in COMMAND_TABLE[stem]:
        handler = getattr(module, attribute, None)
        if not callable(handler):
            logger.error("Command %s.%s is missing or not callable", stem, attribute)
            continue
        yield CommandSpec(name=command_name, handler=handler)


def discover_commands(package_path: Path, package: str = "devtool.commands") -> list[CommandSpec]:
    """Commands found in ``package_path``, in module name order."""
    stems = sorted(
        path.stem
        for path in package_path.glob("*.py")
        if not path.name.startswith("_") and path.stem in COMMAND_TABLE
    )
    found: list[CommandSpec] = []
    for stem in stems:
        module = _load(package, stem)
        if module is not None:
            found.extend(_specs_for(stem, module))
    return found


__all__ = ["COMMAND_TABLE", "CommandSpec", "discover_commands"]
