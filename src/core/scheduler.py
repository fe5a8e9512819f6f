"""Scheduler for background maintenance jobs."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.core.config import settings
from src.services import message_pipeline


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def run_buffer_sweep() -> None:
    """Process message buffers whose settle check never ran.

    Settle checks live in the web process, so a restart between a message
    arriving and its debounce window expiring would strand the burst.
    """
    try:
        dispatched = await message_pipeline.sweep_stale_buffers()
        if dispatched:
            logger.info("Completed buffer sweep: %d burst(s) recovered", dispatched)
    except Exception as e:
        logger.error(f"Error in buffer sweep job: {e}")


def start_scheduler() -> None:
    """Start the scheduler and register all jobs.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    if settings.buffer_sweep_enabled:
        scheduler.add_job(
            run_buffer_sweep,
            trigger=IntervalTrigger(seconds=settings.buffer_sweep_interval_seconds),
            id="buffer_sweep",
            name="Sweep Stale Message Buffers",
            replace_existing=True,
        )
        logger.info(f"Scheduled buffer sweep job: every {settings.buffer_sweep_interval_seconds}s")

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    logger.info("Stopping scheduler")
    if scheduler.running:
        scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
