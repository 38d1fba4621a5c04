"""
Lead/person persistence used by reconciliation and by manual lead creation.

Both paths go through create_person_and_lead(), so the email uniqueness
constraint on the lead table is the single source of truth for dedup.
"""
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from leadsync.db.engine import SessionFactory
from leadsync.exceptions import DuplicateLeadError
from leadsync.models.lead import Lead, Person
from leadsync.models.sync import SyncJobLead


class LeadStore:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def find_lead_by_email(self, email: str) -> Optional[Lead]:
        async with self.session_factory() as s:
            result = await s.exec(select(Lead).where(Lead.email == email))
            return result.first()

    async def create_person_and_lead(
        self,
        person_fields: Dict[str, Any],
        lead_fields: Dict[str, Any],
        sync_job_id: Optional[str] = None,
    ) -> Lead:
        """
        Insert a Person and the Lead that owns it in one transaction.

        When ``sync_job_id`` is given, the SyncJobLead link is written in the
        same transaction. Any failure rolls back all rows.

        Raises:
            DuplicateLeadError: if a lead with the same email already exists
                (including one inserted concurrently after our lookup).
            Exception: any other store error, unchanged.
        """
        email = lead_fields["email"]
        async with self.session_factory() as s:
            try:
                person = Person(**person_fields)
                s.add(person)
                await s.flush()

                lead = Lead(person_id=person.id, **lead_fields)
                s.add(lead)
                await s.flush()

                if sync_job_id is not None:
                    s.add(SyncJobLead(sync_job_id=sync_job_id, lead_id=lead.id))
                await s.commit()
            except IntegrityError as exc:
                await s.rollback()
                if email is not None and await self.find_lead_by_email(email) is not None:
                    raise DuplicateLeadError(email) from exc
                raise
            except Exception:
                await s.rollback()
                raise

        return lead
