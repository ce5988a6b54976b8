"""Devices adapter.

Devices carry a secondary identifier, the device token. Creation returns the
fresh token; editing does not, so the target token is fetched afterwards. The
``source token -> target token`` pair enters the IdentityMap so analysis
scripts and other payloads embedding the token string can be rewritten.
"""

from typing import Any

from profile_bridge.client.platform_client import PlatformClient
from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter, SyncMode, without
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncAction, SyncOutcome
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

# Fields the platform manages itself
READ_ONLY_FIELDS = ("id", "bucket", "created_at", "updated_at", "last_input", "last_output")

# The only fields an export overwrites on an existing target device
EXPORT_EDIT_FIELDS = ("parse_function", "tags", "active", "visible")


class DevicesAdapter(ResourceAdapter):
    entity_type = EntityType.DEVICES
    resource = "devices"
    summary_fields = ("id", "name", "tags", "type")

    @property
    def requires_token(self) -> bool:
        return self.mode == SyncMode.EXPORT

    async def attach_tokens(self, records: list[EntityRecord], client: PlatformClient) -> None:
        for record in records:
            record.token = await client.device_token(record.id)

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        if self.mode == SyncMode.RESTORE:
            return await self._restore(payload, target_id)
        return await self._export(record, payload, target_id)

    async def _restore(self, payload: dict[str, Any], target_id: str | None) -> SyncOutcome:
        target = self.context.target
        device = self.rewrite(payload)

        if target_id:
            await target.edit(
                self.resource, target_id, without(device, "id", "network", "connector", "updated_at")
            )
            return SyncOutcome(SyncAction.UPDATED, target_id)

        created = await target.create(self.resource, without(device, *READ_ONLY_FIELDS))
        return SyncOutcome(SyncAction.CREATED, str(created["device_id"]))

    async def _export(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        target = self.context.target
        device = without(self.rewrite(payload), *READ_ONLY_FIELDS)

        if target_id:
            self.context.snapshot("target", self.entity_type.value, await target.info(self.resource, target_id))
            await target.edit(
                self.resource, target_id, {k: device.get(k) for k in EXPORT_EDIT_FIELDS}
            )
            new_token = await target.device_token(target_id)
            action = SyncAction.UPDATED
        else:
            created = await target.create(self.resource, device)
            target_id = str(created["device_id"])
            new_token = created.get("token")
            action = SyncAction.CREATED

        self.record_identity(record, target_id)
        if record.token and new_token:
            self.context.identity.record_token(record.token, new_token)
        else:
            logger.warning(
                "device_token_missing",
                name=record.name,
                source_id=record.id,
                target_id=target_id,
            )

        if action == SyncAction.CREATED:
            params = [without(param, "id") for param in await self.source_client.device_params(record.id)]
            if params:
                await target.set_device_params(target_id, params)

        await self._copy_serial_number_tokens(record.id, target_id)
        return SyncOutcome(action, target_id)

    async def _copy_serial_number_tokens(self, source_id: str, target_id: str) -> None:
        """Recreate the source's serial-number tokens on the target device.

        Serial-number tokens on the target are deleted first so a re-run does
        not accumulate duplicates.
        """
        source_tokens = [
            token
            for token in await self.source_client.device_tokens(
                source_id, fields=["name", "permission", "expire_time", "serie_number"]
            )
            if token.get("serie_number")
        ]
        if not source_tokens:
            return

        target = self.context.target
        for token in await target.device_tokens(target_id, fields=["serie_number", "token"]):
            if token.get("serie_number") and token.get("token"):
                await target.delete_device_token(token["token"])

        for token in source_tokens:
            await target.create_device_token(
                target_id,
                {
                    "name": token.get("name"),
                    "permission": token.get("permission") or "full",
                    "expire_time": "never",
                    "serie_number": token["serie_number"],
                },
            )
