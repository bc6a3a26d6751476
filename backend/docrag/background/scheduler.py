"""
Background scheduler for periodic maintenance.

Uses APScheduler on the app's event loop. The only job today is the daily
search-analytics retention cleanup.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from docrag.background.analytics_cleanup import cleanup_search_analytics
from docrag.config import get_settings

logger = logging.getLogger(__name__)

ANALYTICS_CLEANUP_JOB_ID = "cleanup_search_analytics_task"

# Singleton scheduler instance
scheduler = AsyncIOScheduler()


def register_jobs(target: BaseScheduler = scheduler) -> None:
    """Add (or replace) the maintenance jobs according to settings."""
    settings = get_settings()

    if not settings.ANALYTICS_CLEANUP_ENABLED:
        logger.info("🔕 Analytics cleanup disabled")
        return

    target.add_job(
        func=cleanup_search_analytics,
        trigger=CronTrigger(hour=settings.ANALYTICS_CLEANUP_HOUR, minute=0),
        id=ANALYTICS_CLEANUP_JOB_ID,
        replace_existing=True,
    )
    logger.info(
        f"🔔 Scheduled {ANALYTICS_CLEANUP_JOB_ID} daily at {settings.ANALYTICS_CLEANUP_HOUR:02d}:00 "
        f"(retention {settings.ANALYTICS_RETENTION_DAYS} days)"
    )


def init_scheduler():
    """Register jobs and start the scheduler.

    Called during FastAPI lifespan startup.
    """
    register_jobs()
    scheduler.start()

    jobs = scheduler.get_jobs()
    if jobs:
        logger.info(f"📅 Scheduler started with {len(jobs)} job(s):")
        for job in jobs:
            logger.info(f"   - {job.id}: next run at {job.next_run_time}")
    else:
        logger.info("📅 Scheduler started (no jobs configured)")


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("📅 Scheduler shut down.")
