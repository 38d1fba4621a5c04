"""
SyncJob ledger: creation, lookup and lifecycle transitions of sync runs.

Allowed transitions:

    PENDING ──> IN_PROGRESS ──> COMPLETED
                           └──> FAILED

A queue redelivery (``redelivery=True``) may move a job back to IN_PROGRESS
from any state; application code never does.
"""
import logging
from typing import List, Optional

from sqlmodel import select

from leadsync.db.engine import SessionFactory
from leadsync.exceptions import InvalidTransitionError, JobNotFoundError
from leadsync.models.common import utc_now
from leadsync.models.sync import SyncJob, SyncJobLead, SyncStatus
from leadsync.sync.progress import SyncProgress

logger = logging.getLogger(__name__)


class SyncJobLedger:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def create(self, source: str, batch_size: int) -> SyncJob:
        """Insert a PENDING job and return it."""
        job = SyncJob(source=source, batch_size=batch_size, status=SyncStatus.PENDING)
        async with self.session_factory() as s:
            s.add(job)
            await s.commit()
            await s.refresh(job)
        return job

    async def get(self, job_id: str) -> Optional[SyncJob]:
        async with self.session_factory() as s:
            return await s.get(SyncJob, job_id)

    async def list_recent(self, limit: int = 10) -> List[SyncJob]:
        """Most recently created jobs first."""
        async with self.session_factory() as s:
            result = await s.exec(
                select(SyncJob).order_by(SyncJob.created_at.desc()).limit(limit)
            )
            return list(result.all())

    async def created_lead_ids(self, job_id: str) -> List[str]:
        async with self.session_factory() as s:
            result = await s.exec(
                select(SyncJobLead.lead_id)
                .where(SyncJobLead.sync_job_id == job_id)
                .order_by(SyncJobLead.created_at)
            )
            return list(result.all())

    # ─── Transitions ──────────────────────────────────────────────────────────

    async def mark_in_progress(self, job_id: str, *, redelivery: bool = False) -> SyncJob:
        """
        Move a job to IN_PROGRESS and stamp started_at.

        Raises:
            JobNotFoundError: if no row has this id.
            InvalidTransitionError: if the job is not PENDING and this is not
                a queue redelivery.
        """
        async with self.session_factory() as s:
            job = await s.get(SyncJob, job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.status != SyncStatus.PENDING and not redelivery:
                raise InvalidTransitionError(
                    f"Sync job {job_id}: {job.status.value} -> in_progress is not allowed"
                )
            if job.status != SyncStatus.PENDING:
                logger.warning(
                    "sync_job=%s re-entering in_progress from %s on redelivery",
                    job_id, job.status.value,
                )
            job.status = SyncStatus.IN_PROGRESS
            job.started_at = utc_now()
            job.completed_at = None
            job.attempts += 1
            s.add(job)
            await s.commit()
            await s.refresh(job)
            return job

    async def mark_completed(self, job_id: str, progress: SyncProgress) -> SyncJob:
        """Move IN_PROGRESS -> COMPLETED with the counts and errors of this attempt.

        Errors replace those of any earlier attempt so that
        ``created + skipped + len(errors) <= processed`` holds on the row.
        """
        async with self.session_factory() as s:
            job = await self._get_in_progress(s, job_id, SyncStatus.COMPLETED)
            job.status = SyncStatus.COMPLETED
            job.completed_at = utc_now()
            job.records_processed = progress.processed
            job.records_created = progress.created
            job.records_skipped = progress.skipped
            job.errors = list(progress.errors)
            s.add(job)
            await s.commit()
            await s.refresh(job)
            return job

    async def mark_failed(self, job_id: str, message: str) -> SyncJob:
        """Move IN_PROGRESS -> FAILED. Counts from the failed attempt are not written."""
        async with self.session_factory() as s:
            job = await self._get_in_progress(s, job_id, SyncStatus.FAILED)
            job.status = SyncStatus.FAILED
            job.completed_at = utc_now()
            job.error_message = message
            s.add(job)
            await s.commit()
            await s.refresh(job)
            return job

    async def record_enqueue_failure(self, job_id: str, message: str) -> None:
        """Annotate a PENDING job whose task never reached the queue."""
        async with self.session_factory() as s:
            job = await s.get(SyncJob, job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            job.error_message = f"enqueue failed: {message}"
            s.add(job)
            await s.commit()

    async def _get_in_progress(self, s, job_id: str, target: SyncStatus) -> SyncJob:
        job = await s.get(SyncJob, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status != SyncStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Sync job {job_id}: {job.status.value} -> {target.value} is not allowed"
            )
        return job
