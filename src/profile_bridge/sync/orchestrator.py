"""Sync orchestrator for export and restore runs.

This module drives entity type phases in dependency order. Each phase lists
both sides, correlates identities, then drains one job per source item
through a BoundedTaskRunner. A phase that fails as a whole (listing failure,
duplicate correlation keys, unavailable dependency) is recorded and the run
moves on; only phases depending on it are blocked.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from profile_bridge.client.exceptions import (
    ConfigurationError,
    DependencyUnavailableError,
    ProfileBridgeError,
)
from profile_bridge.client.platform_client import PlatformClient
from profile_bridge.config import SyncConfig
from profile_bridge.resources import EntityType, get_export_order, get_info, get_restore_order
from profile_bridge.sync.adapters import ResourceAdapter, SyncContext, SyncMode, create_adapter
from profile_bridge.sync.archive import BackupArchive
from profile_bridge.sync.backup_store import ExportBackupStore
from profile_bridge.sync.identity import EntityRecord, IdentityMap, IdentityResolver
from profile_bridge.sync.result import SyncReport, SyncResult
from profile_bridge.sync.runner import BoundedTaskRunner
from profile_bridge.utils.logging import get_logger, log_phase_progress

logger = get_logger(__name__)

ConfirmPhase = Callable[[EntityType], bool]


class SyncOrchestrator:
    """Runs export and restore phases against a target account.

    The orchestrator owns the IdentityMap for the run. Phases execute one at a
    time; aborting (``request_abort`` or a declined ``confirm_phase``) takes
    effect between phases, never inside one.
    """

    def __init__(
        self,
        config: SyncConfig,
        target: PlatformClient,
        source: PlatformClient | None = None,
        archive: BackupArchive | None = None,
        progress: Any = None,
        backup_store: ExportBackupStore | None = None,
        confirm_phase: ConfirmPhase | None = None,
    ):
        """Initialize orchestrator.

        Args:
            config: Sync configuration
            target: Client for the account being written to
            source: Client for the account being read from (export only)
            archive: Extracted backup to read from (restore only)
            progress: Optional display with ``start_phase``, ``update_phase``
                and ``complete_phase`` methods
            backup_store: Where export snapshots are written (None disables them)
            confirm_phase: Asked before each phase; returning False aborts the run
        """
        self.config = config
        self.target = target
        self.source = source
        self.archive = archive
        self.progress = progress
        self.backup_store = backup_store
        self.confirm_phase = confirm_phase

        self.identity = IdentityMap()
        self.resolver = IdentityResolver(self.identity)
        self._unavailable: set[EntityType] = set()
        self._abort_requested = False

    def request_abort(self) -> None:
        """Stop before the next phase starts; a running phase still drains."""
        self._abort_requested = True
        logger.warning("abort_requested")

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_export(self, entities: list[EntityType] | None = None) -> SyncReport:
        """Export entities from the source account to the target account.

        Args:
            entities: Entity types to export (default: every exportable type).
                Processed in export order regardless of the order given.

        Returns:
            SyncReport with one result per phase

        Raises:
            ConfigurationError: If no source is configured, a requested type
                cannot be exported, or source and target are the same profile
        """
        if self.source is None:
            raise ConfigurationError("Export requires a source account")

        requested = set(entities or get_export_order())
        not_exportable = sorted(t.value for t in requested if not get_info(t).exportable)
        if not_exportable:
            raise ConfigurationError(
                f"Cannot export between live accounts: {', '.join(not_exportable)}"
            )
        order = [t for t in get_export_order() if t in requested]

        source_profile, target_profile = await asyncio.gather(
            self.source.profile_info(), self.target.profile_info()
        )
        source_id = (source_profile.get("info") or {}).get("id")
        target_id = (target_profile.get("info") or {}).get("id")
        if source_id and source_id == target_id:
            raise ConfigurationError("Source and target are the same profile")

        blocked: dict[EntityType, str] = {}
        if EntityType.RUN in requested:
            target_run = await self.target.run_info()
            if not target_run.get("name"):
                blocked[EntityType.RUN] = "Run is not enabled on the target account"

        self.identity.record_token(self.source.token, self.target.token)

        context = SyncContext(
            mode=SyncMode.EXPORT,
            target=self.target,
            identity=self.identity,
            config=self.config,
            source=self.source,
            backup_store=self.backup_store,
        )
        logger.info(
            "export_started",
            source_profile=source_id,
            target_profile=target_id,
            entity_types=[t.value for t in order],
            export_tag=self.config.export_tag,
        )
        return await self._run_phases(order, context, blocked)

    async def run_restore(self, entities: list[EntityType] | None = None) -> SyncReport:
        """Restore entities from the backup archive into the target account.

        Args:
            entities: Entity types to restore (default: every type), processed
                in restore order

        Returns:
            SyncReport with one result per phase

        Raises:
            ConfigurationError: If no archive is configured
        """
        if self.archive is None:
            raise ConfigurationError("Restore requires a backup archive")

        requested = set(entities or get_restore_order())
        order = [t for t in get_restore_order() if t in requested]

        context = SyncContext(
            mode=SyncMode.RESTORE,
            target=self.target,
            identity=self.identity,
            config=self.config,
            archive=self.archive,
        )
        logger.info(
            "restore_started",
            archive=str(self.archive.root),
            entity_types=[t.value for t in order],
        )
        return await self._run_phases(order, context, {})

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _run_phases(
        self,
        order: list[EntityType],
        context: SyncContext,
        blocked: dict[EntityType, str],
    ) -> SyncReport:
        report = SyncReport(mode=context.mode.value)

        for entity_type in order:
            if self._abort_requested or (
                self.confirm_phase is not None and not self.confirm_phase(entity_type)
            ):
                report.aborted = True
                logger.warning("run_aborted", next_phase=entity_type.value)
                break

            await self._run_phase(entity_type, context, report, blocked.get(entity_type))

        report.finish()
        logger.info("run_completed", **{k: v for k, v in report.summary().items() if k != "results"})
        return report

    async def _run_phase(
        self,
        entity_type: EntityType,
        context: SyncContext,
        report: SyncReport,
        phase_error: str | None = None,
    ) -> SyncResult:
        adapter = create_adapter(entity_type, context)
        logger.info("phase_starting", entity_type=entity_type.value, mode=context.mode.value)

        if phase_error is None:
            phase_error = await self._prepare_dependencies(adapter, context, report)
        if phase_error is not None:
            return self._fail_phase(SyncResult(entity_type), phase_error, report)

        try:
            source, target = await self._list_both(adapter)
            resolution = self.resolver.resolve(
                entity_type,
                source,
                target,
                adapter.correlation,
                require_token=adapter.requires_token,
            )
        except ProfileBridgeError as e:
            return self._fail_phase(SyncResult(entity_type), str(e), report)

        result = SyncResult(entity_type)
        for failure in resolution.failures:
            result.record_failure(failure.name, failure.error)

        jobs = [adapter.build_job(d.record, d.target_id) for d in resolution.decisions]
        if self.progress is not None:
            self.progress.start_phase(entity_type, len(jobs) + len(resolution.failures))
            self.progress.update_phase(entity_type, result)

        runner = BoundedTaskRunner(
            entity_type,
            concurrency=self.config.performance.concurrency_for(entity_type),
            delay=self.config.performance.delay_for(entity_type),
            result=result,
            on_progress=self._progress_callback(entity_type),
        )
        await runner.run(jobs)

        self.identity.mark_collected(entity_type)
        report.add(result)
        if self.progress is not None:
            self.progress.complete_phase(entity_type, result)

        log_phase_progress(
            logger,
            entity_type.value,
            created=result.created,
            updated=result.updated,
            failed=result.failed,
            total=len(source),
        )
        return result

    async def _prepare_dependencies(
        self, adapter: ResourceAdapter, context: SyncContext, report: SyncReport
    ) -> str | None:
        """Make sure every referenced type is collected; return a blocking error if not."""
        for dependency in adapter.info.dependencies(context.mode.value):
            if dependency not in self._unavailable and not self.identity.is_collected(dependency):
                await self._collect_identities(dependency, context, report)
            if dependency in self._unavailable:
                return str(DependencyUnavailableError(adapter.entity_type.value, dependency.value))
        return None

    async def _collect_identities(
        self, entity_type: EntityType, context: SyncContext, report: SyncReport
    ) -> bool:
        """List and correlate one entity type without changing the target."""
        adapter = create_adapter(entity_type, context)
        result = SyncResult(entity_type, identity_only=True)
        logger.info("identity_pass_starting", entity_type=entity_type.value)

        if self.progress is not None:
            self.progress.start_phase(entity_type, 0, identity_only=True)

        try:
            source, target = await self._list_both(adapter)
            resolution = self.resolver.resolve(
                entity_type,
                source,
                target,
                adapter.correlation,
                require_token=adapter.requires_token,
            )
        except ProfileBridgeError as e:
            self._fail_phase(result, str(e), report)
            return False

        for failure in resolution.failures:
            result.record_failure(failure.name, failure.error)

        self.identity.mark_collected(entity_type)
        report.add(result)
        if self.progress is not None:
            self.progress.complete_phase(entity_type, result)

        logger.info(
            "identity_pass_completed",
            entity_type=entity_type.value,
            matched=len(resolution.updates),
            unmatched=len(resolution.creates),
        )
        return True

    async def _list_both(
        self, adapter: ResourceAdapter
    ) -> tuple[list[EntityRecord], list[EntityRecord]]:
        source, target = await asyncio.gather(adapter.list_source(), adapter.list_target())
        if adapter.requires_token:
            await asyncio.gather(
                adapter.attach_tokens(source, adapter.source_client),
                adapter.attach_tokens(target, self.target),
            )
        logger.debug(
            "entities_listed",
            entity_type=adapter.entity_type.value,
            source=len(source),
            target=len(target),
        )
        return source, target

    def _fail_phase(self, result: SyncResult, error: str, report: SyncReport) -> SyncResult:
        result.phase_error = error
        self._unavailable.add(result.entity_type)
        report.add(result)
        if self.progress is not None:
            self.progress.complete_phase(result.entity_type, result)
        logger.error(
            "phase_failed",
            entity_type=result.entity_type.value,
            identity_only=result.identity_only,
            error=error,
        )
        return result

    def _progress_callback(self, entity_type: EntityType) -> Callable[[SyncResult], None] | None:
        if self.progress is None:
            return None

        def on_progress(result: SyncResult) -> None:
            self.progress.update_phase(entity_type, result)

        return on_progress
