"""devtool - concurrent updater for developer toolchains.

This package provides the `devtool` command-line tool, which updates
Homebrew, Rustup and Mise in parallel while respecting ordering
constraints between them and showing one live progress table.

Exports:
    __version__: Package version string.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.4.0"
