"""
Maintenance Service

Housekeeping that keeps the auxiliary tables small. Every step is
idempotent, so the job can run as often as needed.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from paperly.modules.rate_limits import repository as rate_limit_repository
from paperly.modules.realtime import service as realtime_service
from paperly.modules.tokens import repository as token_repository
from paperly.modules.users.repository import SecurityEventRepository, SessionRepository

logger = logging.getLogger(__name__)

RATE_LIMIT_RETENTION = timedelta(days=1)
REALTIME_EVENT_RETENTION = timedelta(days=7)
SECURITY_EVENT_RETENTION = timedelta(days=90)


async def cleanup_expired_data(db: AsyncSession, now: datetime | None = None) -> dict[str, int]:
    """
    Revoke and delete expired data in one transaction.

    Expired url validations are invalidated rather than deleted so that
    old links keep answering TOKEN_EXPIRED.

    Returns:
        Number of rows touched per table
    """
    now = now or datetime.now(UTC)

    counts = {
        "sessions_revoked": await SessionRepository.deactivate_expired(db, now),
        "tokens_invalidated": await token_repository.invalidate_expired(db, now),
        "rate_limits_deleted": await rate_limit_repository.delete_stale(
            db, now - RATE_LIMIT_RETENTION
        ),
        "realtime_events_deleted": await realtime_service.delete_events_older_than(
            db, now - REALTIME_EVENT_RETENTION
        ),
        "security_events_deleted": await SecurityEventRepository.delete_older_than(
            db, now - SECURITY_EVENT_RETENTION
        ),
    }
    await db.commit()

    logger.info(f"Cleanup complete: {counts}")
    return counts
