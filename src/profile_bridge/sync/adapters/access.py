"""Access management policies adapter."""

from typing import Any

from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter, without
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncOutcome


class AccessAdapter(ResourceAdapter):
    """Policies embed device, dashboard and analysis ids in their targets and permissions."""

    entity_type = EntityType.ACCESS
    resource = "access"

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        policy = without(self.rewrite(payload), "id", "created_at", "updated_at")
        return await self._create_or_edit(record, policy, target_id, id_key="am_id")
