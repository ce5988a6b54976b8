"""Dictionaries adapter.

The dictionary record is created or edited first, then the content of every
language it declares is copied and activated. On export the content is read
from the source account; an archive carries it inline as
``languages[].dictionary`` when the backup included it.
"""

from typing import Any

from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.base import ResourceAdapter, SyncMode, without
from profile_bridge.sync.identity import EntityRecord
from profile_bridge.sync.result import SyncOutcome
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)


class DictionariesAdapter(ResourceAdapter):
    entity_type = EntityType.DICTIONARIES
    resource = "dictionaries"
    summary_fields = ("id", "slug", "languages", "name", "fallback")

    async def fetch_detail(self, record: EntityRecord) -> dict[str, Any]:
        # The listing already carries every field the target needs
        return dict(record.payload)

    async def create_or_update(
        self, record: EntityRecord, payload: dict[str, Any], target_id: str | None
    ) -> SyncOutcome:
        dictionary = without(payload, "id", "created_at", "updated_at")
        if self.mode == SyncMode.RESTORE:
            dictionary["languages"] = [
                without(lang, "dictionary") if isinstance(lang, dict) else lang
                for lang in dictionary.get("languages") or []
            ]

        outcome = await self._create_or_edit(record, dictionary, target_id, id_key="dictionary")

        for language in payload.get("languages") or []:
            code = language.get("code") if isinstance(language, dict) else None
            if not code:
                continue
            content = await self._language_content(record, language)
            if content is None:
                logger.debug("dictionary_language_skipped", slug=payload.get("slug"), language=code)
                continue
            await self.context.target.edit_dictionary_language(outcome.target_id, code, content)

        return outcome

    async def _language_content(
        self, record: EntityRecord, language: dict[str, Any]
    ) -> dict[str, Any] | None:
        if self.mode == SyncMode.RESTORE:
            content = language.get("dictionary")
            return content if isinstance(content, dict) else None
        return await self.source_client.dictionary_language(record.id, language["code"])
