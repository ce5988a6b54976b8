"""Identity correlation between source and target entities.

The IdentityMap holds, per entity type, ``source id -> target id`` pairs plus
a secondary ``source token -> target token`` map (device tokens, run URL and
anonymous token). Entries are append-only for the duration of one run.

The IdentityResolver decides, for one entity type, which source entities
already exist on the target (update) and which must be created.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from profile_bridge.client.exceptions import (
    ConsistencyError,
    DuplicateCorrelationKeyError,
    IdentityConflictError,
)
from profile_bridge.resources import Correlation, CorrelationKind, EntityType
from profile_bridge.sync.result import FailureRecord
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

TOKENS = "tokens"


@dataclass
class EntityRecord:
    """Summary of one entity on either side of a sync."""

    id: str
    name: str
    correlation_key: str | None
    payload: dict[str, Any] = field(default_factory=dict)
    token: str | None = None

    @property
    def label(self) -> str:
        return f"{self.name} [{self.id}]" if self.name else str(self.id)


def tag_value(payload: dict[str, Any], tag_key: str) -> str | None:
    """Value of the first tag with ``tag_key``, or None."""
    for tag in payload.get("tags") or []:
        if isinstance(tag, dict) and tag.get("key") == tag_key:
            value = tag.get("value")
            return str(value) if value not in (None, "") else None
    return None


def extract_correlation_key(
    payload: dict[str, Any], correlation: Correlation, export_tag: str
) -> str | None:
    """Compute the correlation key of a payload under a correlation rule."""
    if correlation.kind == CorrelationKind.TAG:
        return tag_value(payload, export_tag)
    if correlation.kind == CorrelationKind.NATURAL_KEY:
        value = payload.get(correlation.field or "")
        return str(value) if value not in (None, "") else None
    if correlation.kind == CorrelationKind.SINGLETON:
        return "singleton"
    return None


class IdentityMap:
    """Append-only ``old -> new`` identifier maps for one run."""

    def __init__(self) -> None:
        self._ids: dict[EntityType, dict[str, str]] = defaultdict(dict)
        self._tokens: dict[str, str] = {}
        self._collected: set[EntityType] = set()

    def record(self, entity_type: EntityType, old_id: str, new_id: str) -> None:
        """Write one id mapping.

        Raises:
            IdentityConflictError: If ``old_id`` already maps to a different id
        """
        self._put(self._ids[entity_type], entity_type.value, old_id, new_id)

    def record_token(self, old_token: str, new_token: str) -> None:
        self._put(self._tokens, TOKENS, old_token, new_token)

    @staticmethod
    def _put(mapping: dict[str, str], scope: str, old: str, new: str) -> None:
        existing = mapping.get(old)
        if existing is not None and existing != new:
            raise IdentityConflictError(scope, old, existing, new)
        mapping[old] = new

    def get(self, entity_type: EntityType, old_id: str) -> str | None:
        return self._ids[entity_type].get(old_id)

    def ids(self, entity_type: EntityType) -> MappingProxyType:
        """Read-only view of one entity type's id map."""
        return MappingProxyType(self._ids[entity_type])

    @property
    def tokens(self) -> MappingProxyType:
        return MappingProxyType(self._tokens)

    def mark_collected(self, entity_type: EntityType) -> None:
        self._collected.add(entity_type)

    def is_collected(self, entity_type: EntityType) -> bool:
        return entity_type in self._collected


@dataclass
class Decision:
    """Create-or-update decision for one source record."""

    record: EntityRecord
    target: EntityRecord | None = None

    @property
    def target_id(self) -> str | None:
        return self.target.id if self.target else None

    @property
    def is_update(self) -> bool:
        return self.target is not None


@dataclass
class Resolution:
    decisions: list[Decision] = field(default_factory=list)
    failures: list[FailureRecord] = field(default_factory=list)

    @property
    def updates(self) -> list[Decision]:
        return [d for d in self.decisions if d.is_update]

    @property
    def creates(self) -> list[Decision]:
        return [d for d in self.decisions if not d.is_update]


class IdentityResolver:
    """Correlates source and target records and fills the IdentityMap."""

    def __init__(self, identity_map: IdentityMap):
        self.identity_map = identity_map

    def resolve(
        self,
        entity_type: EntityType,
        source: list[EntityRecord],
        target: list[EntityRecord],
        correlation: Correlation,
        require_token: bool = False,
    ) -> Resolution:
        """Decide create vs. update for every source record.

        Matched pairs are written to the IdentityMap immediately. Unmatched
        records and records without a correlation key become create decisions.

        Args:
            entity_type: Entity type being resolved
            source: Source side records
            target: Target side records
            correlation: Correlation rule of the entity type in this mode
            require_token: Matched pairs must both carry a token; both tokens
                are recorded in the secondary map

        Returns:
            Resolution with one decision per resolvable record and one failure
            per record that could not be resolved

        Raises:
            DuplicateCorrelationKeyError: Two records on one side share a key
        """
        resolution = Resolution()

        if correlation.kind == CorrelationKind.NONE:
            resolution.decisions = [Decision(record) for record in source]
            return resolution

        if correlation.kind == CorrelationKind.SINGLETON:
            target_index = {"singleton": target[0]} if target else {}
            source_keyed = [(record, "singleton") for record in source[:1]]
        else:
            self._check_duplicates(entity_type, "source", source)
            target_index = self._check_duplicates(entity_type, "target", target)
            source_keyed = [(record, record.correlation_key) for record in source]

        for record, key in source_keyed:
            match = target_index.get(key) if key is not None else None
            if match is None:
                resolution.decisions.append(Decision(record))
                continue

            try:
                self._record_pair(entity_type, record, match, require_token)
            except (ConsistencyError, IdentityConflictError) as e:
                logger.error(
                    "identity_resolution_failed",
                    entity_type=entity_type.value,
                    name=record.name,
                    source_id=record.id,
                    error=str(e),
                )
                resolution.failures.append(FailureRecord(name=record.name or record.id, error=str(e)))
                continue

            resolution.decisions.append(Decision(record, match))

        logger.info(
            "identities_resolved",
            entity_type=entity_type.value,
            matched=len(resolution.updates),
            to_create=len(resolution.creates),
            failed=len(resolution.failures),
        )
        return resolution

    def _record_pair(
        self,
        entity_type: EntityType,
        record: EntityRecord,
        match: EntityRecord,
        require_token: bool,
    ) -> None:
        if require_token:
            if not record.token:
                raise ConsistencyError(f"Token not found for source {record.label}")
            if not match.token:
                raise ConsistencyError(f"Token not found for target {match.label}")

        if record.id and match.id:
            self.identity_map.record(entity_type, record.id, match.id)
        if require_token:
            self.identity_map.record_token(record.token, match.token)

    @staticmethod
    def _check_duplicates(
        entity_type: EntityType, side: str, records: list[EntityRecord]
    ) -> dict[str, EntityRecord]:
        """Index records by correlation key, failing fast on duplicates."""
        index: dict[str, EntityRecord] = {}
        for record in records:
            key = record.correlation_key
            if key is None:
                continue
            if key in index:
                raise DuplicateCorrelationKeyError(
                    entity_type.value, side, key, [index[key].label, record.label]
                )
            index[key] = record
        return index
