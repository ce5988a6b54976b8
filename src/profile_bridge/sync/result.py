"""Sync results: per entity type tallies and the run-level report."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from profile_bridge.resources import EntityType


class SyncAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True)
class SyncOutcome:
    """What one job did to the target."""

    action: SyncAction
    target_id: str | None


@dataclass(frozen=True)
class FailureRecord:
    name: str
    error: str


@dataclass
class SyncResult:
    """Created/updated/failed tallies for one entity type phase.

    ``phase_error`` is set when the phase failed as a whole (listing failure,
    duplicate correlation keys, unavailable dependency); in that case no item
    was processed. ``identity_only`` marks a list-and-correlate pass that made
    no changes on the target.
    """

    entity_type: EntityType
    created: int = 0
    updated: int = 0
    failed: int = 0
    failures: list[FailureRecord] = field(default_factory=list)
    phase_error: str | None = None
    identity_only: bool = False

    def record_outcome(self, outcome: SyncOutcome) -> None:
        if outcome.action == SyncAction.CREATED:
            self.created += 1
        else:
            self.updated += 1

    def record_failure(self, name: str, error: BaseException | str) -> None:
        self.failed += 1
        self.failures.append(FailureRecord(name=name, error=str(error)))

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.failed

    @property
    def phase_failed(self) -> bool:
        return self.phase_error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type.value,
            "created": self.created,
            "updated": self.updated,
            "failed": self.failed,
            "failures": [{"name": f.name, "error": f.error} for f in self.failures],
            "phase_error": self.phase_error,
            "identity_only": self.identity_only,
        }


@dataclass
class SyncReport:
    """Ordered collection of SyncResults for one export or restore run."""

    mode: str
    results: list[SyncResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    aborted: bool = False

    def add(self, result: SyncResult) -> None:
        self.results.append(result)

    def get(self, entity_type: EntityType) -> SyncResult | None:
        """Latest full-phase result for an entity type (identity passes excluded)."""
        for result in reversed(self.results):
            if result.entity_type == entity_type and not result.identity_only:
                return result
        return None

    def finish(self) -> None:
        self.finished_at = datetime.now(UTC)

    @property
    def failed_phases(self) -> list[SyncResult]:
        return [r for r in self.results if r.phase_failed]

    @property
    def exit_code(self) -> int:
        """Non-zero only when at least one phase failed as a whole."""
        return 1 if self.failed_phases else 0

    def summary(self) -> dict[str, Any]:
        phases = [r for r in self.results if not r.identity_only]
        duration = None
        if self.finished_at is not None:
            duration = round((self.finished_at - self.started_at).total_seconds(), 2)
        return {
            "mode": self.mode,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": duration,
            "aborted": self.aborted,
            "total_created": sum(r.created for r in phases),
            "total_updated": sum(r.updated for r in phases),
            "total_failed": sum(r.failed for r in phases),
            "failed_phases": [r.entity_type.value for r in self.failed_phases],
            "results": [r.to_dict() for r in self.results],
        }
