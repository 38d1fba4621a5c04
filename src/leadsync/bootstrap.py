"""
Process wiring.

build_container() is the one place that turns Settings into live objects:
engine, queue, ledger, orchestrator, services. The API lifespan, the worker
entry point and the tests all go through it, each passing overrides for the
pieces they want to fake.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine

from leadsync.ai.claude_client import ClaudeClient
from leadsync.ai.summary import LeadSummaryService
from leadsync.cache import CacheService, MemoryCacheBackend, RedisCacheBackend
from leadsync.config import Settings
from leadsync.db.engine import SessionFactory, build_engine, build_session_factory, init_db
from leadsync.exceptions import InvalidTransitionError, JobNotFoundError
from leadsync.leads.repository import LeadRepository
from leadsync.leads.service import LeadService
from leadsync.queue.base import RetryPolicy, TaskQueue
from leadsync.queue.memory import InMemoryTaskQueue
from leadsync.queue.redis_stream import RedisStreamTaskQueue
from leadsync.sources.registry import SOURCE_NAMES, CandidateSource, build_source
from leadsync.sync.ledger import SyncJobLedger
from leadsync.sync.orchestrator import SyncOrchestrator
from leadsync.sync.service import SyncService
from leadsync.sync.store import LeadStore

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    engine: AsyncEngine
    session_factory: SessionFactory
    queue: TaskQueue
    ledger: SyncJobLedger
    store: LeadStore
    orchestrator: SyncOrchestrator
    sync_service: SyncService
    lead_service: LeadService
    cache: CacheService
    redis: Optional[Redis] = None

    async def close(self) -> None:
        await self.queue.stop()
        if self.redis is not None:
            await self.redis.aclose()
        await self.engine.dispose()


async def build_container(
    settings: Settings,
    *,
    engine: Optional[AsyncEngine] = None,
    queue: Optional[TaskQueue] = None,
    source_factory: Optional[Callable[[str], CandidateSource]] = None,
    claude: Optional[ClaudeClient] = None,
) -> Container:
    """
    Build every long-lived component from ``settings`` and create the tables.

    The queue is returned with the orchestrator registered as its handler but
    not started; callers decide whether this process consumes tasks.
    """
    engine = engine or build_engine(settings.database_url)
    await init_db(engine)
    session_factory = build_session_factory(engine)

    redis = None
    if settings.queue_backend == "redis" or settings.cache_backend == "redis":
        redis = aioredis.from_url(settings.redis_url, decode_responses=True)

    if queue is None:
        policy = RetryPolicy(
            max_attempts=settings.sync_max_attempts,
            base_delay=settings.sync_backoff_seconds,
            give_up_on=(JobNotFoundError, InvalidTransitionError),
        )
        if settings.queue_backend == "redis":
            queue = RedisStreamTaskQueue(
                redis,
                stream=settings.queue_stream,
                group=settings.queue_group,
                retry_policy=policy,
                concurrency=settings.worker_concurrency,
            )
        else:
            queue = InMemoryTaskQueue(retry_policy=policy, concurrency=settings.worker_concurrency)
    logger.info("Task queue backend: %s", type(queue).__name__)

    ledger = SyncJobLedger(session_factory)
    store = LeadStore(session_factory)

    if source_factory is None:
        def source_factory(name: str) -> CandidateSource:
            return build_source(name, settings)

    orchestrator = SyncOrchestrator(
        ledger, store, source_factory, fetch_timeout=settings.source_timeout_seconds
    )
    queue.on_task(orchestrator.handle_task)
    sync_service = SyncService(ledger, queue, known_sources=SOURCE_NAMES)

    backend = RedisCacheBackend(redis) if settings.cache_backend == "redis" else MemoryCacheBackend()
    cache = CacheService(backend, default_ttl=settings.cache_ttl_seconds)

    if claude is None and settings.anthropic_api_key:
        claude = ClaudeClient(api_key=settings.anthropic_api_key, model=settings.anthropic_model)
    summaries = None
    if claude is not None:
        summaries = LeadSummaryService(claude, cache, ttl=settings.summary_cache_ttl_seconds)
    else:
        logger.info("ANTHROPIC_API_KEY not set, lead summaries disabled.")

    lead_service = LeadService(
        store,
        LeadRepository(session_factory),
        cache,
        summaries=summaries,
        cache_ttl=settings.cache_ttl_seconds,
    )

    return Container(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        queue=queue,
        ledger=ledger,
        store=store,
        orchestrator=orchestrator,
        sync_service=sync_service,
        lead_service=lead_service,
        cache=cache,
        redis=redis,
    )
