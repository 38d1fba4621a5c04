"""AI-generated lead summary and next-action recommendation."""
import logging
import re

from pydantic import BaseModel, Field, ValidationError

from leadsync.ai.claude_client import ClaudeClient
from leadsync.cache import CacheService, build_summary_key
from leadsync.exceptions import SummaryGenerationError
from leadsync.models.lead import Lead, Person
from leadsync.prompts.lead_summary import SYSTEM_PROMPT, build_lead_summary_prompt

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class LeadSummary(BaseModel):
    summary: str = Field(min_length=50, max_length=300)
    next_action: str = Field(min_length=20, max_length=150)


def parse_summary_reply(text: str) -> LeadSummary:
    """
    Extract the JSON object from a model reply and validate it.

    Tolerates prose or code fences around the object.

    Raises:
        SummaryGenerationError: if no valid object is found.
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise SummaryGenerationError("Model reply contained no JSON object")
    try:
        return LeadSummary.model_validate_json(match.group(0))
    except ValidationError as exc:
        raise SummaryGenerationError(f"Model reply is not a valid lead summary: {exc}") from exc


class LeadSummaryService:
    def __init__(self, claude: ClaudeClient, cache: CacheService, ttl: int = 86400):
        self.claude = claude
        self.cache = cache
        self.ttl = ttl

    async def generate(self, lead: Lead, person: Person) -> LeadSummary:
        """Return a summary for ``lead``, from cache when one exists for its email."""
        key = build_summary_key(lead.email)
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                logger.info("Summary cache hit for %s", key)
                return LeadSummary.model_validate(cached)
            except ValidationError:
                logger.warning("Discarding malformed cached summary for %s", key)

        logger.info("Generating summary for lead %s", lead.id)
        reply = await self.claude.complete(
            build_lead_summary_prompt(lead, person),
            system_prompt=SYSTEM_PROMPT,
            max_tokens=400,
            prefill="{",
        )
        summary = parse_summary_reply(reply)
        await self.cache.set(key, summary.model_dump(), self.ttl)
        return summary
