"""Secrets adapter (restore only, correlated by key)."""

from typing import Any

from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncOutcome


class SecretsAdapter(ResourceAdapter):
    entity_type = EntityType.SECRETS
    resource = "secrets"
    summary_fields = ("id", "key", "tags")

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        secret = {"key": payload.get("key"), "value": payload.get("value"), "tags": payload.get("tags") or []}
        edit = {"value": secret["value"], "tags": secret["tags"]}
        return await self._create_or_edit(record, secret, target_id, id_key="id", edit_payload=edit)
