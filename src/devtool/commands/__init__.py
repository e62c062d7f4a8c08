"""CLI command modules for devtool.

Command functions are registered on the Typer app by
``devtool.core.registry.discover_commands``.
"""
