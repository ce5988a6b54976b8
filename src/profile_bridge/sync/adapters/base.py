"""Shared adapter machinery.

A ResourceAdapter exposes one entity type to the orchestrator: cheap summary
listing for both sides, lazy detail fetch per item, and a create-or-update
operation against the target. Concrete adapters override the pieces that
differ per entity type.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from profile_bridge.client.exceptions import ConfigurationError
from profile_bridge.client.platform_client import PlatformClient
from profile_bridge.config import SyncConfig
from profile_bridge.resources import (
    Correlation,
    CorrelationKind,
    EntityType,
    ResourceTypeInfo,
    get_info,
)
from profile_bridge.sync.archive import BackupArchive
from profile_bridge.sync.backup_store import ExportBackupStore, Side
from profile_bridge.sync.identity import EntityRecord, IdentityMap, extract_correlation_key
from profile_bridge.sync.result import SyncAction, SyncOutcome
from profile_bridge.sync.rewriter import ReferenceRewriter
from profile_bridge.sync.runner import SyncJob


class SyncMode(str, Enum):
    EXPORT = "export"
    RESTORE = "restore"


@dataclass
class SyncContext:
    """Everything an adapter needs for one run."""

    mode: SyncMode
    target: PlatformClient
    identity: IdentityMap
    config: SyncConfig
    source: PlatformClient | None = None
    archive: BackupArchive | None = None
    backup_store: ExportBackupStore | None = None

    def snapshot(self, side: Side, entity: str, payload: dict[str, Any] | None) -> None:
        if self.backup_store is not None:
            self.backup_store.store(side, entity, payload)


def without(payload: dict[str, Any], *fields: str) -> dict[str, Any]:
    """Shallow copy of ``payload`` minus ``fields``."""
    return {k: v for k, v in payload.items() if k not in fields}


class ResourceAdapter:
    """Base adapter. Subclasses set ``entity_type`` and implement ``create_or_update``."""

    entity_type: EntityType
    resource: str | None = None  # PlatformClient resource name, when listable
    summary_fields: tuple[str, ...] = ("id", "name", "tags")

    def __init__(self, context: SyncContext):
        self.context = context

    @property
    def info(self) -> ResourceTypeInfo:
        return get_info(self.entity_type)

    @property
    def mode(self) -> SyncMode:
        return self.context.mode

    @property
    def correlation(self) -> Correlation:
        if self.mode == SyncMode.RESTORE:
            return self.info.restore_correlation
        if self.info.export_correlation is None:
            raise ConfigurationError(
                f"{self.entity_type.value} cannot be exported between live accounts"
            )
        return self.info.export_correlation

    @property
    def requires_token(self) -> bool:
        """Identity passes must capture a secondary token for every matched pair."""
        return False

    @property
    def source_client(self) -> PlatformClient:
        if self.context.source is None:
            raise ConfigurationError("Export requires a source account")
        return self.context.source

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def to_record(self, payload: dict[str, Any]) -> EntityRecord:
        return EntityRecord(
            id=str(payload.get("id") or ""),
            name=str(payload.get(self.info.name_field) or ""),
            correlation_key=extract_correlation_key(
                payload, self.correlation, self.context.config.export_tag
            ),
            payload=payload,
        )

    def _listing_fields(self) -> list[str]:
        fields = list(self.summary_fields)
        extra = [self.info.name_field]
        if self.correlation.kind == CorrelationKind.NATURAL_KEY and self.correlation.field:
            extra.append(self.correlation.field)
        for name in extra:
            if name not in fields:
                fields.append(name)
        return fields

    async def _list_live(self, client: PlatformClient) -> list[EntityRecord]:
        tag_key = (
            self.context.config.export_tag
            if self.correlation.kind == CorrelationKind.TAG
            else None
        )
        items = await client.list_all(self.resource, fields=self._listing_fields(), tag_key=tag_key)
        return [self.to_record(item) for item in items]

    async def list_source(self) -> list[EntityRecord]:
        if self.mode == SyncMode.RESTORE:
            return [self.to_record(item) for item in self.context.archive.load(self.entity_type)]
        return await self._list_live(self.source_client)

    async def list_target(self) -> list[EntityRecord]:
        return await self._list_live(self.context.target)

    async def attach_tokens(self, records: list[EntityRecord], client: PlatformClient) -> None:
        """Fill ``record.token`` where the entity type has a secondary identifier."""
        return None

    # ------------------------------------------------------------------
    # Per item
    # ------------------------------------------------------------------

    async def fetch_detail(self, record: EntityRecord) -> dict[str, Any]:
        """Full source payload: the archived record, or a live detail fetch."""
        if self.mode == SyncMode.RESTORE:
            return dict(record.payload)
        payload = await self.source_client.info(self.resource, record.id)
        self.context.snapshot("original", self.entity_type.value, payload)
        return payload

    def rewriter(self, *local: dict[str, str]) -> ReferenceRewriter:
        """Rewriter over this type's dependencies, device maps first, local maps last."""
        identity = self.context.identity
        dependencies = self.info.dependencies(self.mode.value)
        mappings: list[Any] = []
        if EntityType.DEVICES in dependencies:
            mappings.append(identity.ids(EntityType.DEVICES))
        mappings.append(identity.tokens)
        for dependency in dependencies:
            if dependency != EntityType.DEVICES:
                mappings.append(identity.ids(dependency))
        mappings.extend(local)
        return ReferenceRewriter(*mappings)

    def rewrite(self, payload: Any, *local: dict[str, str]) -> Any:
        return self.rewriter(*local).rewrite(payload)

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        raise NotImplementedError

    def record_identity(self, record: EntityRecord, target_id: str | None) -> None:
        """Map ``record`` to ``target_id`` as soon as the target entity exists.

        Adapters with follow-up steps (widgets, scripts, params, languages)
        call this before running them, so a failing step still leaves the
        mapping in place for later phases.
        """
        if record.id and target_id and self.correlation.kind != CorrelationKind.NONE:
            self.context.identity.record(self.entity_type, record.id, target_id)

    async def _create_or_edit(
        self,
        record: EntityRecord,
        payload: dict[str, Any],
        target_id: str | None,
        id_key: str,
        edit_payload: dict[str, Any] | None = None,
    ) -> SyncOutcome:
        """Plain create (id read from ``id_key`` in the response) or edit."""
        client = self.context.target
        if target_id:
            await client.edit(self.resource, target_id, payload if edit_payload is None else edit_payload)
            outcome = SyncOutcome(SyncAction.UPDATED, target_id)
        else:
            created = await client.create(self.resource, payload)
            outcome = SyncOutcome(SyncAction.CREATED, str(created[id_key]))
        self.record_identity(record, outcome.target_id)
        return outcome

    def build_job(self, record: EntityRecord, target_id: str | None) -> SyncJob:
        """Job that fetches, syncs and records the identity of one item."""

        async def run() -> SyncOutcome:
            payload = await self.fetch_detail(record)
            outcome = await self.create_or_update(record, payload, target_id)
            self.record_identity(record, outcome.target_id)
            return outcome

        return SyncJob(name=record.name or record.id, run=run, source_id=record.id)
