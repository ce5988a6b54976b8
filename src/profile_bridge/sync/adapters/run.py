"""Run (end-user application) settings and run users.

The run is a singleton per account. On export, the source run's URL and
anonymous token are mapped to the target's in the secondary identity map
before any payload is rewritten, so sign-in button links and anything else
pointing at the old run follow the move.
"""

import secrets
from typing import Any

from profile_bridge.client.exceptions import ItemSyncError
from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter, SyncMode, without
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncAction, SyncOutcome
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

# Copied as-is onto a new run user; the platform requires a password on create
RUN_USER_CREATE_FIELDS = (
    "name",
    "email",
    "timezone",
    "company",
    "phone",
    "language",
    "tags",
    "active",
    "options",
)


def generate_password() -> str:
    """Random password for run users created by a restore."""
    return secrets.token_hex(16)


def map_sidebar_buttons(buttons: list[dict[str, Any]], dashboards: dict[str, str]) -> list[dict[str, Any]]:
    """Point dashboard sidebar buttons at the target dashboards.

    Buttons of other types, and dashboard buttons whose dashboard was not
    synchronized, are kept unchanged.
    """
    mapped = []
    for button in buttons:
        if isinstance(button, dict) and button.get("type") == "dashboard":
            value = button.get("value")
            button = {**button, "value": dashboards.get(value, value)}
        mapped.append(button)
    return mapped


class RunAdapter(ResourceAdapter):
    entity_type = EntityType.RUN

    async def list_source(self) -> list[EntityRecord]:
        if self.mode == SyncMode.RESTORE:
            return await super().list_source()
        run = await self.source_client.run_info()
        return [self.to_record(run)] if run else []

    async def list_target(self) -> list[EntityRecord]:
        run = await self.context.target.run_info()
        return [self.to_record(run)] if run.get("name") else []

    async def fetch_detail(self, record: EntityRecord) -> dict[str, Any]:
        if self.mode == SyncMode.EXPORT:
            self.context.snapshot("original", self.entity_type.value, record.payload)
        return dict(record.payload)

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        target = self.context.target
        if self.mode == SyncMode.RESTORE:
            await target.edit_run(without(self.rewrite(payload), "created_at"))
            return SyncOutcome(SyncAction.UPDATED, None)

        target_run = await target.run_info()
        if not target_run.get("name"):
            raise ItemSyncError("Run is not enabled on the target account")
        self.context.snapshot("target", self.entity_type.value, target_run)

        identity = self.context.identity
        for field in ("url", "anonymous_token"):
            if payload.get(field) and target_run.get(field):
                identity.record_token(payload[field], target_run[field])

        dashboards = dict(identity.ids(EntityType.DASHBOARDS))
        rewriter = self.rewriter()

        run = without(target_run, "created_at")
        run["sidebar_buttons"] = map_sidebar_buttons(payload.get("sidebar_buttons") or [], dashboards)
        run["signin_buttons"] = [
            {**button, "url": rewriter.rewrite_text(button["url"])}
            if isinstance(button, dict) and isinstance(button.get("url"), str)
            else button
            for button in payload.get("signin_buttons") or []
        ]
        run["email_templates"] = {
            **(target_run.get("email_templates") or {}),
            **(payload.get("email_templates") or {}),
        }
        run["custom_fields"] = payload.get("custom_fields")

        await target.edit_run(run)
        logger.info(
            "run_exported",
            sidebar_buttons=len(run["sidebar_buttons"]),
            signin_buttons=len(run["signin_buttons"]),
        )
        return SyncOutcome(SyncAction.UPDATED, None)


class RunUsersAdapter(ResourceAdapter):
    entity_type = EntityType.RUN_USERS
    resource = "run_users"
    summary_fields = ("id", "email", "name")

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        if target_id:
            edit = without(payload, "id", "password", "created_at", "updated_at")
            return await self._create_or_edit(record, edit, target_id, id_key="user")

        user = {field: payload.get(field) for field in RUN_USER_CREATE_FIELDS}
        user["password"] = generate_password()
        return await self._create_or_edit(record, user, None, id_key="user")
