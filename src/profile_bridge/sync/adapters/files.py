"""Uploaded files (restore only).

Files have no identity on the platform beyond their path, so nothing is
correlated: every file under the archive's ``files/`` tree is uploaded again
under its archive-relative path, overwriting whatever is stored there.
"""

import base64
from pathlib import Path
from typing import Any

from profile_bridge.client.exceptions import ArchiveError
from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncAction, SyncOutcome


class FilesAdapter(ResourceAdapter):
    entity_type = EntityType.FILES

    async def list_source(self) -> list[EntityRecord]:
        return [
            EntityRecord(
                id=relative,
                name=relative,
                correlation_key=None,
                payload={"path": str(path), "filename": relative},
            )
            for path, relative in self.context.archive.list_files()
        ]

    async def list_target(self) -> list[EntityRecord]:
        return []

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        try:
            content = Path(payload["path"]).read_bytes()
        except OSError as e:
            raise ArchiveError(f"Unreadable archive file {payload['path']}: {e}") from e

        await self.context.target.upload_files(
            [
                {
                    "filename": payload["filename"],
                    "file": base64.b64encode(content).decode("ascii"),
                    "public": False,
                }
            ]
        )
        return SyncOutcome(SyncAction.CREATED, None)
