"""UI rendering utilities for devtool CLI commands."""

from devtool.ui.progress_view import LiveTableRenderer, render_progress_table
from devtool.ui.summary import render_banner, render_plan, render_summary

__all__ = [
    "LiveTableRenderer",
    "render_banner",
    "render_plan",
    "render_progress_table",
    "render_summary",
]
