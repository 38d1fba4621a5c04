"""
Record reconciler: decides create / skip / error for one fetched candidate.

  1. Look up an existing lead by email (the natural key). Found: skipped.
  2. Otherwise insert Person + Lead atomically. Success: created.
  3. A unique-email violation at the store (a concurrent run won the race)
     is also skipped; any other store error becomes error(message).

The lookup and the insert are deliberately not atomic across tasks; the
store's uniqueness constraint is what makes concurrent runs safe.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from leadsync.exceptions import DuplicateLeadError
from leadsync.models.common import utc_now
from leadsync.models.lead import Lead
from leadsync.sources.normalizer import (
    Candidate,
    candidate_to_lead_fields,
    candidate_to_person_fields,
)
from leadsync.sync.progress import SyncProgress
from leadsync.sync.store import LeadStore


class Outcome(str, Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: Outcome
    lead: Optional[Lead] = None
    message: Optional[str] = None

    @classmethod
    def created(cls, lead: Lead) -> "ReconcileResult":
        return cls(Outcome.CREATED, lead=lead)

    @classmethod
    def skipped(cls, message: Optional[str] = None) -> "ReconcileResult":
        return cls(Outcome.SKIPPED, message=message)

    @classmethod
    def error(cls, message: str) -> "ReconcileResult":
        return cls(Outcome.ERROR, message=message)


class Reconciler:
    """Applies candidates to the lead store, one at a time."""

    def __init__(self, store: LeadStore, sync_job_id: Optional[str] = None):
        """
        Args:
            store: Lead store to read and write.
            sync_job_id: When set, created leads are linked to this run.
        """
        self.store = store
        self.sync_job_id = sync_job_id

    async def reconcile(
        self, candidate: Candidate, synced_at: Optional[datetime] = None
    ) -> ReconcileResult:
        try:
            existing = await self.store.find_lead_by_email(candidate.email)
            if existing is not None:
                return ReconcileResult.skipped("already exists")

            lead = await self.store.create_person_and_lead(
                candidate_to_person_fields(candidate),
                candidate_to_lead_fields(candidate, synced_at or utc_now()),
                sync_job_id=self.sync_job_id,
            )
            return ReconcileResult.created(lead)

        except DuplicateLeadError:
            return ReconcileResult.skipped("created concurrently")
        except Exception as exc:
            return ReconcileResult.error(str(exc) or exc.__class__.__name__)

    async def apply(self, candidate: Candidate, progress: SyncProgress) -> ReconcileResult:
        """Reconcile one candidate and fold the result into ``progress``."""
        progress.begin_record()
        result = await self.reconcile(candidate)
        if result.outcome is Outcome.CREATED:
            progress.record_created()
        elif result.outcome is Outcome.SKIPPED:
            progress.record_skipped()
        else:
            progress.record_error(candidate.email, result.message)
        return result
