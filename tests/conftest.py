"""Shared test fixtures."""
from typing import Callable, List, Optional

import pytest

from leadsync.bootstrap import build_container
from leadsync.config import Settings
from leadsync.db.engine import build_engine, build_session_factory, init_db
from leadsync.sources.normalizer import Candidate
from leadsync.sync.ledger import SyncJobLedger
from leadsync.sync.store import LeadStore


class FakeSource:
    """Candidate source returning canned batches (or raising) without HTTP."""

    name = "randomuser-api"

    def __init__(self, candidates: Optional[List[Candidate]] = None, error: Optional[Exception] = None):
        self.candidates = list(candidates or [])
        self.error = error
        self.calls: List[int] = []

    async def fetch_batch(self, count: int) -> List[Candidate]:
        self.calls.append(count)
        if self.error is not None:
            raise self.error
        return list(self.candidates)


@pytest.fixture
def make_candidate() -> Callable[..., Candidate]:
    def _make(email: str, first_name: str = "Ava", last_name: str = "Lopez", **extra) -> Candidate:
        return Candidate(
            email=email,
            first_name=first_name,
            last_name=last_name,
            city=extra.pop("city", "Austin"),
            country=extra.pop("country", "United States"),
            nationality=extra.pop("nationality", "US"),
            **extra,
        )

    return _make


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture(name="engine")
async def engine_fixture():
    """In-memory aiosqlite engine (StaticPool), fresh tables per test."""
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def ledger(session_factory) -> SyncJobLedger:
    return SyncJobLedger(session_factory)


@pytest.fixture
def store(session_factory) -> LeadStore:
    return LeadStore(session_factory)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        queue_backend="memory",
        cache_backend="memory",
        worker_concurrency=1,
        embedded_worker=False,
        sync_backoff_seconds=0.0,
        sync_schedule_enabled=False,
        anthropic_api_key="",
    )


@pytest.fixture
async def container(settings, engine, fake_source):
    """Fully wired container on the in-memory engine with a fake source and no AI client."""
    container = await build_container(
        settings, engine=engine, source_factory=lambda name: fake_source
    )
    yield container
    await container.close()
