"""
Background cleanup job: delete search analytics past the retention window.

Runs daily from the APScheduler instance in `scheduler.py`. Saved queries
are never touched; only `search_analytics` rows older than
ANALYTICS_RETENTION_DAYS are removed.
"""

import logging

from docrag.config import get_settings
from docrag.core.dependencies import get_tracker

logger = logging.getLogger(__name__)


async def cleanup_search_analytics(days_to_keep: int | None = None) -> bool:
    """Delete analytics entries older than the retention window.

    Returns:
        True if the delete went through, False otherwise (already logged).
    """
    days = days_to_keep or get_settings().ANALYTICS_RETENTION_DAYS
    tracker = get_tracker()
    success = await tracker.cleanup(days)
    if success:
        logger.info(f"✅ Analytics cleanup finished (kept last {days} days)")
    else:
        logger.warning("Analytics cleanup failed, will retry on next run")
    return success
