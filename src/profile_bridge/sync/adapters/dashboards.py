"""Dashboards adapter.

Dashboards are synchronized in two levels. The dashboard itself is created
(with an empty arrangement, since widgets need an existing dashboard id) or
edited first. Widgets are then written one by one in arrangement order,
each rewritten with device and analysis maps plus the ids of the widgets
written before it. Finally the dashboard arrangement is replaced with one
pointing at the new widget ids.

Export fetches widgets from the source account. Restore reads them from the
``widgets`` list embedded in the archived dashboard record.
"""

import asyncio
from typing import Any

from profile_bridge.client.exceptions import NotFoundError
from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter, SyncMode, without
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncAction, SyncOutcome
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

READ_ONLY_FIELDS = ("id", "created_at", "updated_at", "last_access")

# Fields an export overwrites on an already existing target dashboard
EXPORT_EDIT_FIELDS = (
    "label",
    "tags",
    "tabs",
    "blueprint_device_behavior",
    "blueprint_devices",
    "blueprint_selector_behavior",
)


def order_arrangement(dashboard: dict[str, Any]) -> list[dict[str, Any]]:
    """Arrangement entries with widgets of hidden tabs moved to the end.

    The sort is stable, so the relative order within each group is kept.
    """
    hidden_tabs = {
        tab.get("key")
        for tab in dashboard.get("tabs") or []
        if isinstance(tab, dict) and tab.get("hidden")
    }
    arrangement = [item for item in dashboard.get("arrangement") or [] if isinstance(item, dict)]
    return sorted(arrangement, key=lambda item: bool(item.get("tab") in hidden_tabs))


def coerce_quantities(widget: dict[str, Any]) -> dict[str, Any]:
    """Convert ``data[].qty`` strings to numbers, in place."""
    for entry in widget.get("data") or []:
        if not isinstance(entry, dict) or not entry.get("qty"):
            continue
        qty = entry["qty"]
        if isinstance(qty, str):
            try:
                number = float(qty)
            except ValueError:
                continue
            entry["qty"] = int(number) if number.is_integer() else number
    return widget


class DashboardsAdapter(ResourceAdapter):
    entity_type = EntityType.DASHBOARDS
    resource = "dashboards"
    summary_fields = ("id", "label", "tags")

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        if self.mode == SyncMode.RESTORE:
            return await self._restore(record, payload, target_id)
        return await self._export(record, payload, target_id)

    async def _export(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        target = self.context.target
        content = without(self.rewrite(payload), *READ_ONLY_FIELDS, "arrangement")

        if target_id:
            current = await target.info(self.resource, target_id)
            self.context.snapshot("target", self.entity_type.value, current)
            await target.edit(
                self.resource, target_id, {k: content.get(k) for k in EXPORT_EDIT_FIELDS}
            )
            await self._remove_widgets(target_id, current)
            action = SyncAction.UPDATED
        else:
            created = await target.create(self.resource, {**content, "arrangement": []})
            target_id = str(created["dashboard"])
            await target.edit(self.resource, target_id, content)
            action = SyncAction.CREATED

        self.record_identity(record, target_id)
        widgets = await self._fetch_source_widgets(record.id, payload)
        await self._write_widgets(target_id, payload, widgets)
        return SyncOutcome(action, target_id)

    async def _restore(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        target = self.context.target
        content = without(self.rewrite(payload), *READ_ONLY_FIELDS, "arrangement", "widgets")
        existing: set[str] = set()

        if target_id:
            current = await target.info(self.resource, target_id)
            existing = {
                item["widget_id"] for item in current.get("arrangement") or [] if item.get("widget_id")
            }
            await target.edit(self.resource, target_id, content)
            action = SyncAction.UPDATED
        else:
            created = await target.create(self.resource, {**content, "arrangement": []})
            target_id = str(created["dashboard"])
            action = SyncAction.CREATED

        self.record_identity(record, target_id)
        archived = [w for w in payload.get("widgets") or [] if isinstance(w, dict) and w.get("id")]
        widgets = {str(w["id"]): w for w in archived}

        dashboard = payload
        if not payload.get("arrangement") and widgets:
            dashboard = {**payload, "arrangement": [{"widget_id": wid} for wid in widgets]}

        await self._write_widgets(target_id, dashboard, widgets, existing)
        return SyncOutcome(action, target_id)

    async def _fetch_source_widgets(
        self, dashboard_id: str, dashboard: dict[str, Any]
    ) -> dict[str, dict[str, Any]]:
        source = self.source_client
        widgets: dict[str, dict[str, Any]] = {}
        for item in dashboard.get("arrangement") or []:
            widget_id = item.get("widget_id")
            if not widget_id:
                continue
            widget = await source.widget_info(dashboard_id, widget_id)
            self.context.snapshot("original", "widgets", {"dashboard": dashboard_id, **widget})
            widgets[widget_id] = widget
        return widgets

    async def _remove_widgets(self, dashboard_id: str, dashboard: dict[str, Any]) -> None:
        for item in dashboard.get("arrangement") or []:
            widget_id = item.get("widget_id")
            if not widget_id:
                continue
            try:
                await self.context.target.delete_widget(dashboard_id, widget_id)
            except NotFoundError:
                logger.debug("widget_already_removed", dashboard_id=dashboard_id, widget_id=widget_id)

    async def _write_widgets(
        self,
        dashboard_id: str,
        dashboard: dict[str, Any],
        widgets: dict[str, dict[str, Any]],
        existing: set[str] | frozenset[str] = frozenset(),
    ) -> None:
        """Write widgets in arrangement order, then point the arrangement at them.

        Widgets whose id is in ``existing`` are edited in place; all others are
        created. A widget that references a widget written after it is edited
        again once every new id is known.
        """
        target = self.context.target
        widget_delay = self.context.config.performance.widget_delay_ms / 1000

        widget_ids: dict[str, str] = {}
        sent: dict[str, dict[str, Any]] = {}
        new_arrangement: list[dict[str, Any]] = []

        for item in order_arrangement(dashboard):
            old_id = item.get("widget_id")
            widget = widgets.get(old_id)
            if widget is None:
                logger.warning(
                    "widget_missing", dashboard_id=dashboard_id, widget_id=old_id
                )
                continue

            body = self._widget_body(widget, widget_ids)
            if old_id in existing:
                await target.edit_widget(dashboard_id, old_id, body)
                new_id = old_id
            else:
                new_id = await target.create_widget(dashboard_id, body)

            widget_ids[old_id] = new_id
            sent[old_id] = body
            new_arrangement.append({**item, "widget_id": new_id})

            if widget_delay > 0:
                await asyncio.sleep(widget_delay)

        for old_id, body in sent.items():
            final = self._widget_body(widgets[old_id], widget_ids)
            if final != body:
                await target.edit_widget(dashboard_id, widget_ids[old_id], final)

        await target.edit(self.resource, dashboard_id, {"arrangement": new_arrangement})
        logger.info(
            "dashboard_widgets_written",
            dashboard_id=dashboard_id,
            widgets=len(new_arrangement),
        )

    def _widget_body(self, widget: dict[str, Any], widget_ids: dict[str, str]) -> dict[str, Any]:
        body = without(self.rewrite(widget, widget_ids), "id", "dashboard")
        return coerce_quantities(body)
