"""
Maintenance Background Jobs

Schedule:
- cleanup_expired_data runs every hour
- It can also be triggered manually via the debug job endpoints
"""

import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from paperly.core.database import async_session_maker
from paperly.core.scheduler import register_job
from paperly.modules.maintenance import service

logger = logging.getLogger(__name__)

JOB_ID_CLEANUP = "cleanup_expired_data"


async def run_cleanup() -> dict[str, Any]:
    """Run the cleanup in its own session and report what it did."""
    executed_at = datetime.now(UTC)
    logger.info("Starting cleanup job")

    async with async_session_maker() as db:
        try:
            counts = await service.cleanup_expired_data(db, executed_at)
        except Exception:
            await db.rollback()
            logger.exception("Cleanup job failed")
            raise

    return {"executed_at": executed_at.isoformat(), **counts}


def register_maintenance_jobs() -> None:
    """
    Register maintenance jobs with the scheduler.

    Call during application startup, before the scheduler is started.
    """
    register_job(
        job_id=JOB_ID_CLEANUP,
        func=run_cleanup,
        trigger=IntervalTrigger(hours=1),
    )
    logger.info(f"Registered job: {JOB_ID_CLEANUP} (interval: 1 hour)")
