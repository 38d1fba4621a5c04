"""FastAPI application factory."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from leadsync.api.routes import health, leads, sync as sync_routes
from leadsync.bootstrap import Container, build_container
from leadsync.config import get_settings
from leadsync.scheduler.jobs import build_scheduler

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build and return the FastAPI app.

    With no ``container`` the lifespan builds one from get_settings() and, when
    ``embedded_worker`` is set, also runs the queue consumers and the hourly
    scheduler in this process.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.container is None
        if owned:
            settings = get_settings()
            logging.basicConfig(
                level=settings.log_level,
                format="%(asctime)s %(name)s %(levelname)s %(message)s",
            )
            app.state.container = await build_container(settings)
        current = app.state.container

        scheduler = None
        if owned and current.settings.embedded_worker:
            await current.queue.start()
            if current.settings.sync_schedule_enabled:
                scheduler = build_scheduler(current.sync_service, current.settings)
                scheduler.start()
                logger.info(
                    "Scheduler started (hourly sync at minute %02d)",
                    current.settings.sync_cron_minute,
                )
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            if owned:
                await current.close()
                app.state.container = None

    app = FastAPI(
        title="LeadSync API",
        description="CRM lead store with scheduled external lead sync",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    app.include_router(health.router, tags=["health"])
    app.include_router(leads.router, prefix="/leads", tags=["leads"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app


# Module-level app instance for uvicorn
app = create_app()
