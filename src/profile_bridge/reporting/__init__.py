"""Reporting and progress tracking for sync runs."""

from profile_bridge.reporting.progress import SyncProgressDisplay
from profile_bridge.reporting.report import (
    format_duration,
    render_content_summary,
    render_failures_table,
    render_summary_table,
    write_json_report,
)

__all__ = [
    "SyncProgressDisplay",
    "format_duration",
    "render_content_summary",
    "render_failures_table",
    "render_summary_table",
    "write_json_report",
]
