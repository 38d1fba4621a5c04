"""Sync boundary operations used by the API, the CLI and the scheduler."""
import logging
from typing import Iterable, List, Optional

from leadsync.exceptions import QueueUnavailableError, UnknownSourceError
from leadsync.models.sync import SyncJob
from leadsync.queue.base import TaskQueue
from leadsync.sync.ledger import SyncJobLedger

logger = logging.getLogger(__name__)


class SyncService:
    def __init__(self, ledger: SyncJobLedger, queue: TaskQueue, known_sources: Iterable[str]):
        self.ledger = ledger
        self.queue = queue
        self.known_sources = frozenset(known_sources)

    async def trigger_sync(self, source: str = "randomuser-api", batch_size: int = 10) -> SyncJob:
        """
        Create a PENDING SyncJob and enqueue exactly one task for it.

        Returns the PENDING row immediately; callers poll get_sync_job() for
        the outcome.

        Raises:
            UnknownSourceError: if ``source`` has no adapter (nothing is written).
            ValueError: if ``batch_size`` < 1 (nothing is written).
            QueueUnavailableError: if the task could not be enqueued. The row
                stays PENDING with error_message set.
        """
        if source not in self.known_sources:
            raise UnknownSourceError(f"Unknown sync source: {source}")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        job = await self.ledger.create(source=source, batch_size=batch_size)
        try:
            await self.queue.enqueue(job.id, {"source": source, "batch_size": batch_size})
        except Exception as exc:
            logger.error("sync_job=%s could not be enqueued: %s", job.id, exc)
            await self.ledger.record_enqueue_failure(job.id, str(exc))
            raise QueueUnavailableError(f"Could not enqueue sync job {job.id}: {exc}") from exc

        logger.info("sync_job=%s enqueued source=%s batch_size=%d", job.id, source, batch_size)
        return job

    async def get_sync_job(self, job_id: str) -> Optional[SyncJob]:
        return await self.ledger.get(job_id)

    async def list_recent_sync_jobs(self, limit: int = 10) -> List[SyncJob]:
        return await self.ledger.list_recent(limit)
