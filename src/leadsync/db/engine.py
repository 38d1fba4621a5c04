"""Async SQLModel engine and session factory construction.

Nothing here is module-global: the process entry points build one engine and
pass it (or the session factory) down to the components that need it.
"""
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

SessionFactory = async_sessionmaker


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for *database_url*.

    SQLite URLs get ``check_same_thread=False``; in-memory SQLite additionally
    uses a StaticPool so every session sees the same database.
    """
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.rstrip("/").endswith("aiosqlite:"):
            kwargs["poolclass"] = StaticPool
    return create_async_engine(database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (idempotent)."""
    # Import all models so metadata is populated before create_all
    from leadsync.models.lead import Lead, Person  # noqa: F401
    from leadsync.models.sync import SyncJob, SyncJobLead  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a DB session from the app's container."""
    async with request.app.state.container.session_factory() as session:
        yield session
