"""Lead CRUD and AI summary operations."""
import logging
from typing import List, Optional

from leadsync.ai.summary import LeadSummaryService
from leadsync.cache import CacheService, build_lead_key
from leadsync.exceptions import (
    DuplicateLeadError,
    LeadConflictError,
    LeadNotFoundError,
    SummaryGenerationError,
)
from leadsync.leads.repository import LeadRepository
from leadsync.leads.schemas import LeadCreate, LeadPage, LeadRead, LeadUpdate, PageMeta
from leadsync.models.common import utc_now
from leadsync.models.lead import LeadSource, LeadStatus
from leadsync.sync.store import LeadStore

logger = logging.getLogger(__name__)


class LeadService:
    def __init__(
        self,
        store: LeadStore,
        repository: LeadRepository,
        cache: CacheService,
        summaries: Optional[LeadSummaryService] = None,
        cache_ttl: Optional[int] = None,
    ):
        self.store = store
        self.repository = repository
        self.cache = cache
        self.summaries = summaries
        self.cache_ttl = cache_ttl

    async def create_lead(self, data: LeadCreate) -> LeadRead:
        """
        Create a manual lead and its person profile.

        Raises:
            LeadConflictError: if the email is already taken.
        """
        email = data.email.lower()
        if await self.store.find_lead_by_email(email) is not None:
            raise LeadConflictError(f"Lead with email {email} already exists")

        person_fields = {
            "first_name": data.first_name,
            "last_name": data.last_name,
            "full_name": f"{data.first_name} {data.last_name}",
            "phone": data.phone,
            "address": data.address.model_dump() if data.address else None,
            "date_of_birth": data.date_of_birth,
            "nationality": data.nationality,
            "gender": data.gender,
            "picture_url": data.picture_url,
        }
        lead_fields = {
            "email": email,
            "external_id": data.external_id,
            "source": LeadSource.MANUAL,
            "status": data.status,
            "lead_metadata": data.metadata,
        }
        try:
            lead = await self.store.create_person_and_lead(person_fields, lead_fields)
        except DuplicateLeadError as exc:
            raise LeadConflictError(str(exc)) from exc

        logger.info("Created manual lead %s (%s)", lead.id, email)
        return await self._read(lead.id)

    async def get_lead(self, lead_id: str) -> LeadRead:
        """Return one lead with its person, served from cache when possible."""

        async def load():
            return (await self._read(lead_id)).model_dump(mode="json")

        cached = await self.cache.get_or_set(build_lead_key(lead_id), load, self.cache_ttl)
        return LeadRead.model_validate(cached)

    async def list_leads(
        self,
        skip: int = 0,
        take: int = 10,
        status: Optional[LeadStatus] = None,
        search: Optional[str] = None,
    ) -> LeadPage:
        rows, total = await self.repository.list(skip=skip, take=take, status=status, search=search)
        return LeadPage(
            data=[LeadRead.from_rows(lead, person) for lead, person in rows],
            meta=PageMeta.build(total, skip, take),
        )

    async def get_leads(self, lead_ids: List[str]) -> List[LeadRead]:
        """Leads for the given ids, oldest first; unknown ids are ignored."""
        rows = await self.repository.get_many(lead_ids)
        return [LeadRead.from_rows(lead, person) for lead, person in rows]

    async def update_lead(self, lead_id: str, data: LeadUpdate) -> LeadRead:
        fields = data.model_dump(exclude_unset=True)
        # email and status are required columns; an explicit null leaves them as-is
        for required in ("email", "status"):
            if required in fields and fields[required] is None:
                del fields[required]
        if "email" in fields:
            fields["email"] = fields["email"].lower()
        if "metadata" in fields:
            fields["lead_metadata"] = fields.pop("metadata")

        lead, person = await self.repository.update(lead_id, fields)
        await self.cache.delete(build_lead_key(lead_id))
        logger.info("Updated lead %s: %s", lead_id, ", ".join(sorted(fields)) or "no changes")
        return LeadRead.from_rows(lead, person)

    async def delete_lead(self, lead_id: str) -> None:
        await self.repository.delete(lead_id)
        await self.cache.delete(build_lead_key(lead_id))
        logger.info("Deleted lead %s", lead_id)

    async def generate_summary(self, lead_id: str) -> LeadRead:
        """
        Generate (or reuse) the AI summary for a lead and persist it on the row.

        Raises:
            LeadNotFoundError: if the lead does not exist.
            SummaryGenerationError: if AI summaries are disabled or the model
                reply is unusable.
        """
        if self.summaries is None:
            raise SummaryGenerationError("AI summaries are not configured")

        row = await self.repository.get(lead_id)
        if row is None:
            raise LeadNotFoundError(lead_id)
        lead, person = row

        summary = await self.summaries.generate(lead, person)
        lead, person = await self.repository.update(
            lead_id,
            {
                "summary": summary.summary,
                "next_action": summary.next_action,
                "summary_generated_at": utc_now(),
            },
        )
        await self.cache.delete(build_lead_key(lead_id))
        return LeadRead.from_rows(lead, person)

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _read(self, lead_id: str) -> LeadRead:
        row = await self.repository.get(lead_id)
        if row is None:
            raise LeadNotFoundError(lead_id)
        return LeadRead.from_rows(*row)
