"""
Notification Repository

Database operations for notifications.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Notification, NotificationSeverity, RecipientType, RelatedType


async def create(
    db: AsyncSession,
    *,
    recipient_id: UUID,
    recipient_type: RecipientType,
    title: str,
    message: str,
    severity: NotificationSeverity,
    related_id: UUID | None = None,
    related_type: RelatedType | None = None,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        recipient_type=recipient_type,
        title=title,
        message=message,
        severity=severity,
        is_read=False,
        related_id=related_id,
        related_type=related_type,
        created_at=datetime.now(UTC),
    )
    db.add(notification)
    await db.flush()
    return notification


async def list_for_recipients(
    db: AsyncSession,
    recipient_ids: list[UUID],
    *,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    """Newest notifications addressed to any of the given recipients."""
    query = select(Notification).where(Notification.recipient_id.in_(recipient_ids))
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def count_unread(db: AsyncSession, recipient_ids: list[UUID]) -> int:
    result = await db.execute(
        select(func.count()).where(
            Notification.recipient_id.in_(recipient_ids),
            Notification.is_read.is_(False),
        )
    )
    return result.scalar() or 0


async def get_for_recipients(
    db: AsyncSession,
    notification_id: UUID,
    recipient_ids: list[UUID],
) -> Notification | None:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id.in_(recipient_ids),
        )
    )
    return result.scalar_one_or_none()


async def mark_all_read(db: AsyncSession, recipient_ids: list[UUID]) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.recipient_id.in_(recipient_ids), Notification.is_read.is_(False))
        .values(is_read=True)
    )
    return result.rowcount or 0
