"""
APScheduler jobs for background sync.

Every hour (at minute ``sync_cron_minute``) a new sync is triggered through
the same SyncService.trigger_sync() path as the manual API trigger. Ticks do
not wait for or check on earlier runs; concurrent runs are safe because
reconciliation is idempotent per email.

The scheduler runs inside the worker process (wired in __main__.py) or the
API process when the embedded worker is enabled.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from leadsync.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_scheduler(sync_service, settings: Optional[Settings] = None) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        sync_service: SyncService used to trigger each run.
        settings: Defaults to get_settings().

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = settings or get_settings()
    scheduler = AsyncIOScheduler(timezone=timezone.utc)

    scheduler.add_job(
        _hourly_sync,
        trigger="cron",
        minute=settings.sync_cron_minute,
        id="hourly_sync",
        replace_existing=True,
        kwargs={
            "sync_service": sync_service,
            "source": settings.sync_source,
            "batch_size": settings.sync_batch_size,
        },
    )

    return scheduler


async def _hourly_sync(sync_service, source: str, batch_size: int) -> None:
    """
    Hourly job: trigger one sync run.

    Never raises, so a failed enqueue cannot take the scheduler down; the
    next tick runs regardless.
    """
    logger.info("Hourly sync tick at %s", datetime.now(timezone.utc).isoformat())

    try:
        job = await sync_service.trigger_sync(source, batch_size)
        logger.info("Hourly sync job created: sync_job=%s status=%s", job.id, job.status.value)
    except Exception as exc:
        logger.exception("Failed to trigger hourly sync: %s", exc)
