"""
SyncOrchestrator: runs one queued sync task end to end.

Flow for a single task:
  1. Ledger row -> IN_PROGRESS (before any external call, so observers can
     tell "queued" from "running"). Missing row: JobNotFoundError.
  2. Fetch one batch from the source adapter, bounded by fetch_timeout.
  3. Reconcile every candidate in fetch order; per-record failures become
     ledger error entries and never abort the batch.
  4. Ledger row -> COMPLETED with the final counts.

If anything in 2-4 raises (adapter failure, timeout, ledger write), the row
moves to FAILED and the exception propagates to the queue, whose retry
policy decides on redelivery. Counts from a failed attempt are discarded;
each attempt starts from zero.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from leadsync.exceptions import SourceFetchError
from leadsync.queue.base import QueuedTask
from leadsync.sources.normalizer import Candidate
from leadsync.sources.registry import CandidateSource
from leadsync.sync.ledger import SyncJobLedger
from leadsync.sync.progress import SyncProgress
from leadsync.sync.reconciler import Outcome, Reconciler
from leadsync.sync.store import LeadStore

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    sync_job_id: str
    records_processed: int = 0
    records_created: int = 0
    records_skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_progress(cls, sync_job_id: str, progress: SyncProgress) -> "SyncResult":
        return cls(
            sync_job_id=sync_job_id,
            records_processed=progress.processed,
            records_created=progress.created,
            records_skipped=progress.skipped,
            errors=list(progress.errors),
        )


class SyncOrchestrator:
    """Consumes sync tasks: drives the reconciler over a batch and keeps the ledger current."""

    def __init__(
        self,
        ledger: SyncJobLedger,
        store: LeadStore,
        source_factory: Callable[[str], CandidateSource],
        fetch_timeout: float = 30.0,
    ):
        """
        Args:
            ledger: SyncJob ledger.
            store: Lead store the reconciler writes to.
            source_factory: Maps a source name to an adapter (build_source in
                production, a fake in tests).
            fetch_timeout: Upper bound in seconds on one fetch_batch() call.
        """
        self.ledger = ledger
        self.store = store
        self.source_factory = source_factory
        self.fetch_timeout = fetch_timeout

    async def handle_task(self, task: QueuedTask) -> SyncResult:
        """Queue handler: unpack the payload and run the task."""
        return await self.run_sync_task(
            task.task_id,
            task.payload.get("source", "randomuser-api"),
            int(task.payload.get("batch_size", 10)),
            attempt=task.attempt,
        )

    async def run_sync_task(
        self, task_id: str, source: str, batch_size: int, *, attempt: int = 1
    ) -> SyncResult:
        """
        Execute one sync task against the SyncJob row ``task_id``.

        Raises:
            JobNotFoundError: if the ledger row does not exist.
            SourceFetchError: if the batch could not be fetched (row -> FAILED).
        """
        await self.ledger.mark_in_progress(task_id, redelivery=attempt > 1)
        logger.info(
            "sync_job=%s started source=%s batch_size=%d attempt=%d",
            task_id, source, batch_size, attempt,
        )

        try:
            candidates = await self._fetch(source, batch_size)
            progress = await self._reconcile_batch(task_id, candidates)
            await self.ledger.mark_completed(task_id, progress)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.error("sync_job=%s failed attempt=%d: %s", task_id, attempt, message)
            try:
                await self.ledger.mark_failed(task_id, message)
            except Exception:
                logger.exception("sync_job=%s could not be marked failed", task_id)
            raise

        logger.info(
            "sync_job=%s completed processed=%d created=%d skipped=%d errors=%d",
            task_id, progress.processed, progress.created, progress.skipped, len(progress.errors),
        )
        return SyncResult.from_progress(task_id, progress)

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _fetch(self, source_name: str, batch_size: int) -> List[Candidate]:
        source = self.source_factory(source_name)
        try:
            candidates = await asyncio.wait_for(
                source.fetch_batch(batch_size), timeout=self.fetch_timeout
            )
        except asyncio.TimeoutError as exc:
            raise SourceFetchError(
                f"Fetching from {source_name} timed out after {self.fetch_timeout:.0f}s"
            ) from exc

        if len(candidates) > batch_size:
            logger.warning(
                "Source %s returned %d records for a batch of %d; extra records ignored",
                source_name, len(candidates), batch_size,
            )
            candidates = candidates[:batch_size]
        return candidates

    async def _reconcile_batch(self, task_id: str, candidates: List[Candidate]) -> SyncProgress:
        progress = SyncProgress()
        reconciler = Reconciler(self.store, sync_job_id=task_id)

        for candidate in candidates:
            result = await reconciler.apply(candidate, progress)
            if result.outcome is Outcome.ERROR:
                logger.warning(
                    "sync_job=%s record=%s outcome=error message=%s",
                    task_id, candidate.email, result.message,
                )
            else:
                logger.info(
                    "sync_job=%s record=%s outcome=%s",
                    task_id, candidate.email, result.outcome.value,
                )
        return progress
