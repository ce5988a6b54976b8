"""Actions adapter."""

from typing import Any

from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter, SyncMode, without
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncOutcome


def clean_triggers(action: dict[str, Any]) -> dict[str, Any]:
    """Drop trigger fields the platform rejects when copied verbatim, in place.

    Empty ``value`` and ``second_value`` are removed, and tag based triggers
    lose ``unlock``.
    """
    for trigger in action.get("trigger") or []:
        if not isinstance(trigger, dict):
            continue
        if not trigger.get("value"):
            trigger.pop("value", None)
        if not trigger.get("second_value"):
            trigger.pop("second_value", None)
        if trigger.get("tag_key"):
            trigger.pop("unlock", None)
    return action


class ActionsAdapter(ResourceAdapter):
    entity_type = EntityType.ACTIONS
    resource = "actions"

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        action = without(self.rewrite(payload), "id", "created_at", "updated_at")
        if self.mode == SyncMode.EXPORT:
            clean_triggers(action)
        return await self._create_or_edit(record, action, target_id, id_key="action")
