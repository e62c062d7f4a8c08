from __future__ import annotations

import asyncio

import typer
from rich.markup import escape
from rich.tree import Tree

from devtool.core import diagnostics
from devtool.core.console import console
from devtool.core.decorators import handle_exceptions

STYLE_MAP = {"ok": "green", "warn": "yellow", "error": "red", "missing": "red"}


@handle_exceptions
def doctor(
    ctx: typer.Context,
    tool: list[str] | None = typer.Option(
        None, "--tool", "-t", help="Check only specific tools (id or binary)."
    ),
) -> None:
    """Probe every known tool in parallel and report what is installed."""
    state = ctx.obj
    state.logger.debug("Running doctor for tools: %s", tool or "all")

    checks, probes = asyncio.run(
        diagnostics.run_diagnostics_suite(
            config=state.config,
            config_path=state.config_meta.path,
            tool_names=tool,
            config_error=state.config_meta.error,
        )
    )

    tree = Tree("System Health")
    settings_branch = tree.add("Checks")
    for check in checks:
        style = STYLE_MAP.get(check.status, "white")
        settings_branch.add(
            f"[{style}]{check.status}[/{style}] {check.name}: {escape(check.message)}"
        )

    tools_branch = tree.add("Tools")
    for probe in probes:
        style = STYLE_MAP.get(probe.status, "white")
        detail = escape(probe.version or probe.message or "")
        if probe.prerequisites:
            detail += f" [dim](after {', '.join(probe.prerequisites)})[/dim]"
        tools_branch.add(
            f"[{style}]{probe.status}[/{style}] {probe.updater.label} "
            f"({probe.updater.binary}) {detail}".strip()
        )

    console.print(tree)
