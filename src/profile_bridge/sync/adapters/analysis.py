"""Analysis adapter.

The analysis record is synchronized first, then its script body: downloaded
from the source's signed URL (export) or read from the archive (restore),
decompressed, and uploaded to the target analysis as base64.
"""

import base64
from typing import Any

from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter, SyncMode, without
from profile_bridge.sync.archive import gunzip_if_compressed
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncAction, SyncOutcome
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

READ_ONLY_FIELDS = ("id", "token", "created_at", "updated_at", "last_run")

EXPORT_EDIT_FIELDS = ("name", "tags", "active", "variables")

SCRIPT_NAMES = {"node": "script.js", "python": "script.py"}


def script_language(runtime: Any) -> str:
    """Upload language for a recorded runtime: ``python`` for python runtimes, else ``node``."""
    if isinstance(runtime, str) and runtime.strip().lower().startswith("python"):
        return "python"
    return "node"


class AnalysisAdapter(ResourceAdapter):
    entity_type = EntityType.ANALYSIS
    resource = "analysis"

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        target = self.context.target
        analysis = self.rewrite(payload)

        if target_id:
            if self.mode == SyncMode.EXPORT:
                self.context.snapshot(
                    "target", self.entity_type.value, await target.info(self.resource, target_id)
                )
                edit = {k: analysis.get(k) for k in EXPORT_EDIT_FIELDS if k in analysis}
            else:
                edit = without(analysis, "id", "token", "created_at", "updated_at")
            await target.edit(self.resource, target_id, edit)
            action = SyncAction.UPDATED
        else:
            created = await target.create(self.resource, without(analysis, *READ_ONLY_FIELDS))
            target_id = str(created["id"])
            action = SyncAction.CREATED

        self.record_identity(record, target_id)
        script = await self._read_script(record)
        if script is not None:
            language = script_language(payload.get("runtime"))
            await target.upload_analysis_script(
                target_id,
                base64.b64encode(script).decode("ascii"),
                language=language,
                name=SCRIPT_NAMES[language],
            )
        else:
            logger.info("analysis_script_missing", name=record.name, source_id=record.id)

        return SyncOutcome(action, target_id)

    async def _read_script(self, record: EntityRecord) -> bytes | None:
        if self.mode == SyncMode.RESTORE:
            return self.context.archive.analysis_script(record.id)

        source = self.source_client
        url = await source.analysis_download_url(record.id)
        return gunzip_if_compressed(await source.download(url))
