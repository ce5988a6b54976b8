"""Snapshots of source and target payloads written during export.

Every entity read during an export is stored as
``<base_dir>/<original|target>/<entity type>/<id>.json`` before the target is
changed, so an operator can inspect or hand-restore what was overwritten.
Widgets are stored under their dashboard:
``<base_dir>/<side>/dashboards/<dashboard id>/widgets/<widget id>.json``.
"""

import json
from pathlib import Path
from typing import Any, Literal

from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

Side = Literal["original", "target"]


class ExportBackupStore:
    """Writes JSON snapshots below a base directory."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    @staticmethod
    def _file_stem(payload: dict[str, Any]) -> str:
        if payload.get("id"):
            return str(payload["id"])
        name = payload.get("name") or payload.get("label") or "undefined"
        return str(name).replace(" ", "").lower()

    def store(self, side: Side, entity: str, payload: dict[str, Any] | None) -> Path | None:
        """Write one snapshot; empty payloads are ignored.

        Args:
            side: "original" for source data, "target" for data about to be overwritten
            entity: Entity type name, or "widgets"
            payload: Record to store

        Returns:
            Path written, or None when nothing was stored
        """
        if not payload:
            return None

        directory = self.base_dir / side / entity
        if entity == "widgets":
            directory = self.base_dir / side / "dashboards" / str(payload.get("dashboard")) / "widgets"

        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{self._file_stem(payload)}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, default=str)

        logger.debug("export_snapshot_stored", side=side, entity=entity, path=str(path))
        return path
