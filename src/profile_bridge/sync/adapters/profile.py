"""Profile settings (restore only).

The archive stores the profile flat; the platform expects it split into
``info`` and ``allocation``. The edit always targets the profile the target
token belongs to, whatever id the backup was taken from.
"""

from typing import Any

from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncAction, SyncOutcome

INFO_FIELDS = ("name", "logo_url", "banner_url")


def to_profile_edit(backup: dict[str, Any]) -> dict[str, Any]:
    """Convert an archived profile into an edit payload."""
    edit: dict[str, Any] = {"info": {k: backup[k] for k in INFO_FIELDS if k in backup}}
    allocation = backup.get("resource_allocation")
    if isinstance(allocation, dict):
        edit["allocation"] = dict(allocation)
    return edit


class ProfileAdapter(ResourceAdapter):
    entity_type = EntityType.PROFILE

    async def list_target(self) -> list[EntityRecord]:
        profile = await self.context.target.profile_info()
        info = profile.get("info") or {}
        if not info.get("id"):
            return []
        return [
            EntityRecord(
                id=str(info["id"]),
                name=str(info.get("name") or ""),
                correlation_key="singleton",
                payload=profile,
            )
        ]

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        if not target_id:
            profile = await self.context.target.profile_info()
            target_id = str(profile["info"]["id"])
        await self.context.target.edit_profile(target_id, to_profile_edit(payload))
        return SyncOutcome(SyncAction.UPDATED, target_id)
