"""
Main CLI entry point for Profile Bridge.

This module provides the command-line interface for copying resources
between two live accounts (export) and restoring a backup archive into a
live account (restore).
"""

import asyncio
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console

from profile_bridge import __version__
from profile_bridge.cli.context import SyncCliContext
from profile_bridge.cli.decorators import handle_errors, pass_context
from profile_bridge.client.exceptions import ConfigurationError
from profile_bridge.reporting.progress import SyncProgressDisplay
from profile_bridge.reporting.report import (
    render_content_summary,
    render_failures_table,
    render_summary_table,
    write_json_report,
)
from profile_bridge.resources import EntityType, get_export_order, normalize_entity_type
from profile_bridge.sync.archive import BackupArchive
from profile_bridge.sync.backup_store import ExportBackupStore
from profile_bridge.sync.orchestrator import SyncOrchestrator
from profile_bridge.sync.result import SyncReport
from profile_bridge.utils.logging import get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)

console = Console()


def _parse_entities(
    ctx: click.Context, param: click.Parameter, value: tuple[str, ...]
) -> list[EntityType]:
    entities: list[EntityType] = []
    for name in value:
        for part in name.split(","):
            if not part.strip():
                continue
            try:
                entity_type = normalize_entity_type(part)
            except ValueError as e:
                raise click.BadParameter(str(e)) from e
            if entity_type not in entities:
                entities.append(entity_type)
    return entities


entity_option = click.option(
    "--entity",
    "-e",
    "entities",
    multiple=True,
    callback=_parse_entities,
    help="Entity type to process (repeatable or comma separated; default: all)",
)

yes_option = click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")

progress_option = click.option(
    "--no-progress", is_flag=True, help="Disable the live progress display"
)


@click.group()
@click.version_option(version=__version__, prog_name="profile-bridge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
    envvar="PROFILE_BRIDGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Console logging level (default from config)",
    envvar="PROFILE_BRIDGE_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Log file path (default from config)",
    envvar="PROFILE_BRIDGE_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """Profile Bridge - Copy and restore platform profile resources.

    Examples:

        # Copy tagged devices, analysis and dashboards to another account
        profile-bridge -c config.yaml export -e devices -e analysis -e dashboards

        # Restore everything from an extracted backup
        profile-bridge -c config.yaml restore --archive ./backup
    """
    ctx.obj = SyncCliContext(config_path=config, log_level=log_level, log_file=log_file)


def _finish(ctx: SyncCliContext, report: SyncReport) -> None:
    """Print the run summary, save the JSON report and exit with the run's code."""
    console.print(render_summary_table(report))
    failures = render_failures_table(report)
    if failures is not None:
        console.print(failures)

    path = write_json_report(report, ctx.config.paths.report_dir)
    console.print(f"Report saved to [cyan]{path}[/cyan]")

    if report.exit_code:
        raise click.exceptions.Exit(report.exit_code)


@cli.command()
@entity_option
@yes_option
@progress_option
@click.option("--export-tag", help="Tag key correlating source and target entities")
@click.option("--no-backup", is_flag=True, help="Do not snapshot payloads before changing them")
@pass_context
@handle_errors
def export(
    ctx: SyncCliContext,
    entities: list[EntityType],
    yes: bool,
    no_progress: bool,
    export_tag: str | None,
    no_backup: bool,
) -> None:
    """Copy tagged resources from the source account to the target account."""
    ctx.setup_logging()
    config = ctx.config
    if config.source is None:
        raise ConfigurationError("Export requires a 'source' account")
    if export_tag:
        config.export_tag = export_tag

    selected = entities or config.entities or get_export_order()
    source_name = config.source.label or config.source.url
    target_name = config.target.label or config.target.url

    console.print(
        f"Exporting [bold]{', '.join(t.value for t in selected)}[/bold] "
        f"from [cyan]{source_name}[/cyan] to [cyan]{target_name}[/cyan] "
        f"(export tag [bold]{config.export_tag}[/bold])"
    )
    if not yes and not click.confirm("Existing target entities will be overwritten. Continue?"):
        click.echo("Operation cancelled.")
        raise click.exceptions.Exit(0)

    backup_store = None if no_backup else ExportBackupStore(config.paths.backup_dir)

    async def run() -> SyncReport:
        async with ctx.create_client(config.source) as source, ctx.create_client(
            config.target
        ) as target:
            display = SyncProgressDisplay(
                enabled=not (no_progress or config.logging.disable_progress), title="Export"
            )
            orchestrator = SyncOrchestrator(
                config, target, source=source, progress=display, backup_store=backup_store
            )
            with display:
                display.set_total_phases(len(selected))
                return await orchestrator.run_export(selected)

    _finish(ctx, asyncio.run(run()))


@cli.command()
@click.option(
    "--archive",
    "-a",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Extracted backup directory (default from config)",
)
@entity_option
@yes_option
@progress_option
@pass_context
@handle_errors
def restore(
    ctx: SyncCliContext,
    archive: Path | None,
    entities: list[EntityType],
    yes: bool,
    no_progress: bool,
) -> None:
    """Restore a backup archive into the target account."""
    ctx.setup_logging()
    config = ctx.config
    archive_dir = archive or config.archive_dir
    if archive_dir is None:
        raise ConfigurationError("No archive given: use --archive or set 'archive_dir'")

    backup = BackupArchive(archive_dir)
    summary = backup.content_summary()
    selected = entities or config.entities or list(summary)
    console.print(render_content_summary({t: n for t, n in summary.items() if t in selected}))

    target_name = config.target.label or config.target.url
    if not yes and not click.confirm(
        f"Restore into {target_name}? Existing entities will be overwritten"
    ):
        click.echo("Operation cancelled.")
        raise click.exceptions.Exit(0)

    async def run() -> SyncReport:
        async with ctx.create_client(config.target) as target:
            display = SyncProgressDisplay(
                enabled=not (no_progress or config.logging.disable_progress), title="Restore"
            )
            orchestrator = SyncOrchestrator(config, target, archive=backup, progress=display)
            with display:
                display.set_total_phases(len(selected))
                return await orchestrator.run_restore(selected)

    _finish(ctx, asyncio.run(run()))


def main() -> int:
    """Main entry point for CLI."""
    try:
        result = cli(standalone_mode=False)
        return result if isinstance(result, int) else 0
    except click.exceptions.Abort:
        click.echo("Aborted.", err=True)
        return 1
    except click.ClickException as e:
        e.show()
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
