"""
Rate Limit Repository

Database operations for rate-limit records.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import RateLimit


async def get_for_update(db: AsyncSession, identifier: str, action: str) -> RateLimit | None:
    """Get the record for (identifier, action), locking the row for this transaction."""
    result = await db.execute(
        select(RateLimit)
        .where(RateLimit.identifier == identifier, RateLimit.action == action)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def insert_if_absent(
    db: AsyncSession,
    identifier: str,
    action: str,
    window_start: datetime,
) -> bool:
    """
    Insert the first attempt for (identifier, action).

    Returns:
        False if a record already exists, e.g. one inserted by a concurrent
        request. Nothing is written in that case.
    """
    result = await db.execute(
        insert(RateLimit)
        .values(
            id=uuid.uuid4(),
            identifier=identifier,
            action=action,
            count=1,
            window_start=window_start,
        )
        .on_conflict_do_nothing(index_elements=[RateLimit.identifier, RateLimit.action])
        .returning(RateLimit.id)
    )
    return result.scalar_one_or_none() is not None


async def delete_stale(db: AsyncSession, window_started_before: datetime) -> int:
    """Delete records whose window started before the cutoff. Returns rows deleted."""
    result = await db.execute(
        delete(RateLimit).where(RateLimit.window_start < window_started_before)
    )
    return result.rowcount or 0
