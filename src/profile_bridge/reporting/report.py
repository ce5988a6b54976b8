"""Run reports.

This module renders the per entity type outcome of a run as a rich table
and saves the full report, including every item failure, as JSON.
"""

import json
from datetime import datetime
from pathlib import Path

from rich.table import Table

from profile_bridge.resources import EntityType, get_description
from profile_bridge.sync.result import SyncReport
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

REPORT_VERSION = "1.0"


def format_duration(seconds: float | None) -> str:
    """Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string (e.g. "2m 5s")
    """
    if seconds is None:
        return "N/A"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


def render_summary_table(report: SyncReport) -> Table:
    """Per entity type created/updated/failed counts of a finished run.

    Identity-only passes are listed only when they failed, since they change
    nothing on the target.
    """
    summary = report.summary()
    title = f"{report.mode.capitalize()} summary ({format_duration(summary['duration_seconds'])})"
    if report.aborted:
        title += " [yellow]aborted[/yellow]"

    table = Table(title=title)
    table.add_column("Entity type")
    table.add_column("Created", justify="right", style="green")
    table.add_column("Updated", justify="right", style="cyan")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Status")

    for result in report.results:
        if result.identity_only and not result.phase_failed:
            continue

        label = get_description(result.entity_type)
        if result.identity_only:
            label += " (identities)"

        if result.phase_failed:
            status = f"[red]phase failed: {result.phase_error}[/red]"
        elif result.failed:
            status = "[yellow]completed with errors[/yellow]"
        else:
            status = "[green]ok[/green]"

        table.add_row(label, str(result.created), str(result.updated), str(result.failed), status)

    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        str(summary["total_created"]),
        str(summary["total_updated"]),
        str(summary["total_failed"]),
        "",
    )
    return table


def render_failures_table(report: SyncReport, limit: int = 50) -> Table | None:
    """Item failures of a run, or None when every item succeeded."""
    rows = [
        (result.entity_type.value, failure.name, failure.error)
        for result in report.results
        for failure in result.failures
    ]
    if not rows:
        return None

    table = Table(title=f"Failed items ({len(rows)})")
    table.add_column("Entity type")
    table.add_column("Item")
    table.add_column("Error", style="red")
    for row in rows[:limit]:
        table.add_row(*row)
    if len(rows) > limit:
        table.add_row("...", f"{len(rows) - limit} more", "see the JSON report")
    return table


def render_content_summary(summary: dict[EntityType, int]) -> Table:
    """Item counts per entity type found in a backup archive."""
    table = Table(title="Backup content")
    table.add_column("Entity type")
    table.add_column("Items", justify="right")
    for entity_type, count in summary.items():
        table.add_row(get_description(entity_type), str(count) if count else "[dim]0[/dim]")
    return table


def write_json_report(report: SyncReport, output_dir: str | Path) -> Path:
    """Save a run report as JSON.

    Args:
        report: Finished run report
        output_dir: Directory to write into (created when missing)

    Returns:
        Path of the written file
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    path = output_path / f"{report.mode}_report_{timestamp}.json"

    document = {
        "report_version": REPORT_VERSION,
        "exit_code": report.exit_code,
        **report.summary(),
    }
    path.write_text(json.dumps(document, indent=2, default=str))

    logger.info("json_report_saved", path=str(path))
    return path
