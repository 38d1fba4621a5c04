"""
Main entrypoint: starts the sync worker (queue consumers + APScheduler) in one process.

FastAPI runs separately under uvicorn.

Usage:
    python -m leadsync                                  # starts worker + scheduler
    python -m leadsync trigger --batch-size 25          # enqueue one sync and exit
    uvicorn leadsync.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import asyncio
import logging

from leadsync.bootstrap import build_container
from leadsync.config import get_settings
from leadsync.scheduler.jobs import build_scheduler

logger = logging.getLogger(__name__)


async def _run_worker() -> None:
    settings = get_settings()
    container = await build_container(settings)

    await container.queue.start()

    scheduler = None
    if settings.sync_schedule_enabled:
        scheduler = build_scheduler(container.sync_service, settings)
        scheduler.start()
        logger.info("Scheduler started (hourly sync at minute %02d)", settings.sync_cron_minute)
    else:
        logger.info("SYNC_SCHEDULE_ENABLED is off, consuming queued tasks only.")

    logger.info("Worker is running. Press Ctrl+C to stop.")
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down...")
    finally:
        if scheduler is not None:
            scheduler.shutdown()
        await container.close()
        logger.info("Goodbye.")


async def _run_trigger(source: str, batch_size: int) -> None:
    settings = get_settings()
    container = await build_container(settings)
    try:
        job = await container.sync_service.trigger_sync(source, batch_size)
        if settings.queue_backend == "memory":
            # Nothing else can consume an in-process queue, so run it here.
            await container.queue.start()
            await container.queue.join()
            job = await container.sync_service.get_sync_job(job.id)
        print(f"{job.id} {job.status.value}")
    finally:
        await container.close()


def _parse_args(argv=None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="leadsync")
    commands = parser.add_subparsers(dest="command")
    trigger = commands.add_parser("trigger", help="enqueue one sync run")
    trigger.add_argument("--source", default=settings.sync_source)
    trigger.add_argument("--batch-size", type=int, default=settings.sync_batch_size)
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    if args.command == "trigger":
        asyncio.run(_run_trigger(args.source, args.batch_size))
    else:
        asyncio.run(_run_worker())
