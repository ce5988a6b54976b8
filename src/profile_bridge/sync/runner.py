"""Bounded-concurrency job runner for one entity type phase."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from profile_bridge.resources import EntityType
from profile_bridge.sync.result import SyncOutcome, SyncResult
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[SyncResult], None]


@dataclass
class SyncJob:
    """One unit of work: a named coroutine factory producing a SyncOutcome."""

    name: str
    run: Callable[[], Awaitable[SyncOutcome]]
    source_id: str | None = None


class BoundedTaskRunner:
    """Runs independent jobs with at most ``concurrency`` in flight.

    Each job holds its slot for its own duration plus ``delay`` seconds, so the
    delay spaces out requests even when several workers are busy. A failing job
    is logged and counted; it never cancels its siblings.
    """

    def __init__(
        self,
        entity_type: EntityType,
        concurrency: int,
        delay: float = 0.0,
        result: SyncResult | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        """Initialize runner.

        Args:
            entity_type: Entity type the jobs belong to
            concurrency: Maximum jobs in flight (must be >= 1)
            delay: Seconds each job keeps its slot after finishing
            result: Result to accumulate into (new one when omitted)
            on_progress: Called with the running result after every job

        Raises:
            ValueError: If concurrency is below 1
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.entity_type = entity_type
        self.concurrency = concurrency
        self.delay = delay
        self.result = result or SyncResult(entity_type)
        self.on_progress = on_progress

    async def run(self, jobs: list[SyncJob]) -> SyncResult:
        """Run every job and return once all of them have settled."""
        if not jobs:
            return self.result

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_with_semaphore(job: SyncJob) -> None:
            async with semaphore:
                try:
                    outcome = await job.run()
                    self.result.record_outcome(outcome)
                    logger.debug(
                        "item_synced",
                        entity_type=self.entity_type.value,
                        name=job.name,
                        source_id=job.source_id,
                        action=outcome.action.value,
                        target_id=outcome.target_id,
                    )
                except Exception as e:
                    self.result.record_failure(job.name, e)
                    logger.error(
                        "item_sync_failed",
                        entity_type=self.entity_type.value,
                        name=job.name,
                        source_id=job.source_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )

                if self.on_progress:
                    self.on_progress(self.result)

                if self.delay > 0:
                    await asyncio.sleep(self.delay)

        await asyncio.gather(*(run_with_semaphore(job) for job in jobs))

        logger.info(
            "jobs_drained",
            entity_type=self.entity_type.value,
            total=len(jobs),
            created=self.result.created,
            updated=self.result.updated,
            failed=self.result.failed,
        )
        return self.result
