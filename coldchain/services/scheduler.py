"""Background job scheduler.

APScheduler-based driver that runs the escalation tick once per interval.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from coldchain.config import settings
from coldchain.logging_config import get_logger
from coldchain.services.escalation_engine import run_escalation_tick

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def check_escalations() -> None:
    """Run one escalation tick over all open alerts.

    Runs every minute. Errors are logged here so a failing tick never
    takes the scheduler down; the next run starts from a clean slate.
    """
    try:
        summary = await run_escalation_tick()
    except Exception as e:
        logger.error(
            "Unexpected error in scheduled escalation check",
            error=str(e),
            exc_info=True,
        )
        return

    if summary.transitions or summary.entry_dispatches or summary.errors:
        logger.info(
            "Scheduled escalation check completed",
            transitions=summary.transitions,
            entry_dispatches=summary.entry_dispatches,
            errors=summary.errors,
        )


def start_scheduler() -> AsyncIOScheduler:
    """Start the background job scheduler.

    Returns:
        The started scheduler instance
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return scheduler

    scheduler = AsyncIOScheduler()

    if settings.escalation_check_enabled:
        scheduler.add_job(
            check_escalations,
            trigger=IntervalTrigger(
                seconds=settings.escalation_check_interval_seconds
            ),
            id="escalation_check",
            name="Alert Escalation Check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(
            "Scheduled escalation check job",
            interval_seconds=settings.escalation_check_interval_seconds,
        )

    scheduler.start()
    logger.info("Background scheduler started")

    return scheduler


def stop_scheduler() -> None:
    """Stop the background job scheduler."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the current scheduler instance.

    Returns:
        The scheduler instance or None if not started
    """
    return scheduler
