"""Read-only access to an extracted backup archive.

Layout::

    <root>/
      devices.json, analysis.json, ...   one array per entity type
      run.json, profile.json             one object each
      files/...                          file attachments, any depth
      analysis/<analysis id>[.ext]       gzip-compressed script bodies
"""

import gzip
import json
from pathlib import Path
from typing import Any

from profile_bridge.client.exceptions import ArchiveError
from profile_bridge.resources import EntityType, get_info, get_restore_order
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

FILES_DIR = "files"
SCRIPTS_DIR = "analysis"

_GZIP_MAGIC = b"\x1f\x8b"


def gunzip_if_compressed(raw: bytes) -> bytes:
    """Decompress gzip data; anything without the gzip magic is returned as-is."""
    if raw[:2] != _GZIP_MAGIC:
        return raw
    return gzip.decompress(raw)


class BackupArchive:
    """An extracted backup directory used as restore source."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        if not self.root.is_dir():
            raise ArchiveError(f"Archive directory not found: {self.root}")

    def _read_json(self, file_name: str) -> Any:
        path = self.root / file_name
        if not path.is_file():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ArchiveError(f"Unreadable archive file {path}: {e}") from e

    def load(self, entity_type: EntityType) -> list[dict[str, Any]]:
        """All archived records of an entity type (single objects as a 1-item list).

        Files are not JSON records; use ``list_files`` for them.
        """
        info = get_info(entity_type)
        if info.archive_file is None:
            return []

        data = self._read_json(info.archive_file)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)]
        raise ArchiveError(f"Unexpected content in {info.archive_file}: {type(data).__name__}")

    def list_files(self) -> list[tuple[Path, str]]:
        """Every attachment under ``files/`` as ``(path, "/relative/path")``, sorted."""
        files_root = self.root / FILES_DIR
        if not files_root.is_dir():
            return []
        return [
            (path, "/" + path.relative_to(files_root).as_posix())
            for path in sorted(files_root.rglob("*"))
            if path.is_file()
        ]

    def analysis_script(self, analysis_id: str) -> bytes | None:
        """Decompressed script body of an archived analysis, or None when absent."""
        scripts_root = self.root / SCRIPTS_DIR
        if not scripts_root.is_dir():
            return None

        candidates = sorted(
            p for p in scripts_root.iterdir() if p.is_file() and p.name.split(".")[0] == analysis_id
        )
        if not candidates:
            return None

        try:
            return gunzip_if_compressed(candidates[0].read_bytes())
        except (OSError, EOFError) as e:
            raise ArchiveError(f"Corrupt script archive {candidates[0]}: {e}") from e

    def content_summary(self) -> dict[EntityType, int]:
        """Number of archived items per entity type, in restore order."""
        summary: dict[EntityType, int] = {}
        for entity_type in get_restore_order():
            if entity_type == EntityType.FILES:
                summary[entity_type] = len(self.list_files())
            else:
                summary[entity_type] = len(self.load(entity_type))
        logger.debug("archive_summary", root=str(self.root), **{k.value: v for k, v in summary.items()})
        return summary
