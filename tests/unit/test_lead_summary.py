"""Tests for the lead summary prompt, reply parsing and LeadSummaryService."""
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from leadsync.ai.summary import LeadSummary, LeadSummaryService, parse_summary_reply
from leadsync.cache import CacheService, MemoryCacheBackend, build_summary_key
from leadsync.exceptions import SummaryGenerationError
from leadsync.models.lead import Lead, LeadSource, LeadStatus, Person
from leadsync.prompts.lead_summary import SYSTEM_PROMPT, _age, build_lead_summary_prompt

SUMMARY = "Ava Lopez is a mid-career professional based in Austin with a verified contact record."
NEXT_ACTION = "Send a short intro email proposing a call."


def _person(**overrides) -> Person:
    fields = dict(
        first_name="Ava",
        last_name="Lopez",
        full_name="Ava Lopez",
        phone="(512) 555-0199",
        address={"city": "Austin", "state": "Texas", "country": "United States"},
        date_of_birth=datetime(1983, 4, 7, tzinfo=timezone.utc),
        nationality="US",
    )
    fields.update(overrides)
    return Person(**fields)


def _lead(source: LeadSource = LeadSource.EXTERNAL_API) -> Lead:
    return Lead(person_id="p1", email="ava.lopez@example.com", source=source, status=LeadStatus.NEW)


def _reply(summary: str = SUMMARY, next_action: str = NEXT_ACTION) -> str:
    return json.dumps({"summary": summary, "next_action": next_action})


class TestPrompt:
    def test_contains_lead_details(self):
        prompt = build_lead_summary_prompt(_lead(), _person())
        assert "Ava Lopez" in prompt
        assert "ava.lopez@example.com" in prompt
        assert "Austin, Texas, United States" in prompt
        assert "- Status: new" in prompt

    def test_imported_lead_framed_as_cold(self):
        prompt = build_lead_summary_prompt(_lead(LeadSource.EXTERNAL_API), _person())
        assert "(cold)" in prompt

    def test_manual_lead_framed_as_high_intent(self):
        prompt = build_lead_summary_prompt(_lead(LeadSource.MANUAL), _person())
        assert "(high intent)" in prompt

    def test_optional_fields_omitted(self):
        prompt = build_lead_summary_prompt(
            _lead(), _person(phone=None, address=None, date_of_birth=None, nationality=None)
        )
        assert "Phone" not in prompt
        assert "Location" not in prompt
        assert "Age" not in prompt

    def test_age_before_birthday(self):
        now = datetime(2025, 4, 6, tzinfo=timezone.utc)
        assert _age(datetime(1983, 4, 7, tzinfo=timezone.utc), now) == 41

    def test_age_naive_dob(self):
        now = datetime(2025, 4, 7, tzinfo=timezone.utc)
        assert _age(datetime(1983, 4, 7), now) == 42

    def test_system_prompt_asks_for_json(self):
        assert "next_action" in SYSTEM_PROMPT


class TestParseSummaryReply:
    def test_plain_json(self):
        parsed = parse_summary_reply(_reply())
        assert parsed.summary == SUMMARY
        assert parsed.next_action == NEXT_ACTION

    def test_json_inside_code_fence(self):
        parsed = parse_summary_reply(f"Here you go:\n```json\n{_reply()}\n```")
        assert parsed.summary == SUMMARY

    def test_no_json_raises(self):
        with pytest.raises(SummaryGenerationError):
            parse_summary_reply("I cannot help with that.")

    def test_summary_too_short_raises(self):
        with pytest.raises(SummaryGenerationError):
            parse_summary_reply(_reply(summary="Too short."))

    def test_next_action_too_long_raises(self):
        with pytest.raises(SummaryGenerationError):
            parse_summary_reply(_reply(next_action="x" * 151))


class TestLeadSummaryService:
    @pytest.fixture
    def cache(self):
        return CacheService(MemoryCacheBackend())

    @pytest.fixture
    def claude(self):
        client = MagicMock()
        client.complete = AsyncMock(return_value=_reply())
        return client

    @pytest.mark.asyncio
    async def test_generates_and_caches_by_email(self, claude, cache):
        service = LeadSummaryService(claude, cache, ttl=60)
        summary = await service.generate(_lead(), _person())

        assert summary == LeadSummary(summary=SUMMARY, next_action=NEXT_ACTION)
        assert claude.complete.await_args.kwargs["system_prompt"] == SYSTEM_PROMPT
        assert claude.complete.await_args.kwargs["prefill"] == "{"
        assert await cache.get(build_summary_key("ava.lopez@example.com")) == summary.model_dump()

    @pytest.mark.asyncio
    async def test_cache_hit_skips_model(self, claude, cache):
        service = LeadSummaryService(claude, cache)
        await service.generate(_lead(), _person())
        await service.generate(_lead(), _person())
        assert claude.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_malformed_cached_value_regenerated(self, claude, cache):
        await cache.set(build_summary_key("ava.lopez@example.com"), {"summary": "stale"})
        service = LeadSummaryService(claude, cache)
        summary = await service.generate(_lead(), _person())
        assert summary.summary == SUMMARY
        claude.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bad_reply_not_cached(self, claude, cache):
        claude.complete.return_value = "no json here"
        service = LeadSummaryService(claude, cache)
        with pytest.raises(SummaryGenerationError):
            await service.generate(_lead(), _person())
        assert await cache.get(build_summary_key("ava.lopez@example.com")) is None
