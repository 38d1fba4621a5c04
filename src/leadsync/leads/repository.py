"""Query and mutation helpers for leads outside the sync path."""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from leadsync.db.engine import SessionFactory
from leadsync.exceptions import LeadConflictError, LeadNotFoundError
from leadsync.models.common import utc_now
from leadsync.models.lead import Lead, LeadStatus, Person
from leadsync.models.sync import SyncJobLead

LeadRow = Tuple[Lead, Person]


class LeadRepository:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def get(self, lead_id: str) -> Optional[LeadRow]:
        async with self.session_factory() as s:
            result = await s.exec(
                select(Lead, Person).join(Person, Person.id == Lead.person_id).where(Lead.id == lead_id)
            )
            return result.first()

    async def get_many(self, lead_ids: List[str]) -> List[LeadRow]:
        if not lead_ids:
            return []
        async with self.session_factory() as s:
            result = await s.exec(
                select(Lead, Person)
                .join(Person, Person.id == Lead.person_id)
                .where(col(Lead.id).in_(lead_ids))
                .order_by(col(Lead.created_at))
            )
            return list(result.all())

    async def list(
        self,
        skip: int = 0,
        take: int = 10,
        status: Optional[LeadStatus] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[LeadRow], int]:
        """
        Page through leads, newest first.

        ``search`` matches first name, last name or email, case-insensitively.
        Returns the page rows and the total number of matches.
        """
        filters = []
        if status is not None:
            filters.append(Lead.status == status)
        if search:
            pattern = f"%{search}%"
            filters.append(
                or_(
                    col(Person.first_name).ilike(pattern),
                    col(Person.last_name).ilike(pattern),
                    col(Lead.email).ilike(pattern),
                )
            )

        query = select(Lead, Person).join(Person, Person.id == Lead.person_id)
        count_query = select(func.count()).select_from(Lead).join(Person, Person.id == Lead.person_id)
        for clause in filters:
            query = query.where(clause)
            count_query = count_query.where(clause)
        query = query.order_by(col(Lead.created_at).desc()).offset(skip).limit(take)

        async with self.session_factory() as s:
            rows = (await s.exec(query)).all()
            total = (await s.exec(count_query)).one()
        return list(rows), total

    async def update(self, lead_id: str, fields: Dict[str, Any]) -> LeadRow:
        """
        Apply ``fields`` to the lead and bump updated_at.

        Raises:
            LeadNotFoundError: if the lead does not exist.
            LeadConflictError: if the new email belongs to another lead.
        """
        async with self.session_factory() as s:
            lead = await s.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFoundError(lead_id)
            for name, value in fields.items():
                setattr(lead, name, value)
            lead.updated_at = utc_now()
            s.add(lead)
            try:
                await s.commit()
            except IntegrityError as exc:
                await s.rollback()
                raise LeadConflictError(f"Lead with email {fields.get('email')} already exists") from exc
            person = await s.get(Person, lead.person_id)
        return lead, person

    async def delete(self, lead_id: str) -> Lead:
        """Delete the lead, its person and any sync-job links."""
        async with self.session_factory() as s:
            lead = await s.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFoundError(lead_id)
            links = await s.exec(select(SyncJobLead).where(SyncJobLead.lead_id == lead_id))
            for link in links.all():
                await s.delete(link)
            await s.flush()
            person = await s.get(Person, lead.person_id)
            await s.delete(lead)
            await s.flush()
            if person is not None:
                await s.delete(person)
            await s.commit()
        return lead
