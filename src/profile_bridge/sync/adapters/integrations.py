"""Integration networks and connectors (restore only).

Devices reference both by id, so they are restored first and their
``old id -> new id`` pairs rewrite the device payloads.
"""

from typing import Any

from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter, without
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncOutcome


class NetworksAdapter(ResourceAdapter):
    entity_type = EntityType.NETWORKS
    resource = "networks"
    id_key = "network"

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        return await self._create_or_edit(
            record, without(payload, "id"), target_id, id_key=self.id_key
        )


class ConnectorsAdapter(NetworksAdapter):
    entity_type = EntityType.CONNECTORS
    resource = "connectors"
    id_key = "connector"
