"""
Notification Service Layer

Durable notifications with best-effort live delivery.

The row in `notifications` is the source of truth. Each notification also
gets a `notification_created` realtime event on the recipient's channel,
recorded in the same transaction and published after commit. Clients that
missed a push re-pull with `list_notifications`.

Workflow steps that write several rows use `create_notification` and
publish the returned events themselves once their transaction commits;
standalone callers use `create_notification_realtime`, which commits and
publishes in one call.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.auth import CurrentUser
from paperly.core.exceptions import NotFoundError
from paperly.modules.notifications import repository
from paperly.modules.notifications.models import (
    Notification,
    NotificationSeverity,
    RecipientType,
    RelatedType,
)
from paperly.modules.realtime.events import (
    NotificationCreatedData,
    NotificationCreatedEvent,
    teacher_channel,
    user_channel,
)
from paperly.modules.realtime.models import RealtimeEvent
from paperly.modules.realtime.service import create_realtime_event, publish_events
from paperly.modules.teachers import repository as teacher_repository

logger = logging.getLogger(__name__)

NOTIFICATIONS_PAGE_SIZE = 50


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id: UUID):
        super().__init__(
            message=f"Notification {notification_id} not found",
            error_code="NOTIFICATION_NOT_FOUND",
        )


@dataclass
class CreatedNotification:
    """A notification plus the realtime event to publish once committed."""

    notification: Notification
    event: RealtimeEvent


def recipient_channel(recipient_type: RecipientType, recipient_id: UUID) -> str:
    if recipient_type == RecipientType.TEACHER:
        return teacher_channel(recipient_id)
    return user_channel(recipient_id)


async def _record_notification_event(
    db: AsyncSession,
    notification: Notification,
) -> RealtimeEvent:
    related_type = notification.related_type.value if notification.related_type else None
    return await create_realtime_event(
        db,
        NotificationCreatedEvent(
            data=NotificationCreatedData(
                notification_id=notification.id,
                recipient_id=notification.recipient_id,
                title=notification.title,
                message=notification.message,
                severity=notification.severity.value,
                related_id=notification.related_id,
                related_type=related_type,
            )
        ),
        channel=recipient_channel(notification.recipient_type, notification.recipient_id),
        recipient_id=notification.recipient_id,
    )


async def create_notification(
    db: AsyncSession,
    *,
    recipient_id: UUID,
    recipient_type: RecipientType,
    title: str,
    message: str,
    severity: NotificationSeverity = NotificationSeverity.INFO,
    related_id: UUID | None = None,
    related_type: RelatedType | None = None,
) -> CreatedNotification:
    """
    Insert a notification and its realtime event in the current transaction.

    Nothing is committed or published here.

    Returns:
        CreatedNotification holding both rows
    """
    notification = await repository.create(
        db,
        recipient_id=recipient_id,
        recipient_type=recipient_type,
        title=title,
        message=message,
        severity=severity,
        related_id=related_id,
        related_type=related_type,
    )

    event = await _record_notification_event(db, notification)
    return CreatedNotification(notification=notification, event=event)


async def create_notification_realtime(
    db: AsyncSession,
    redis: Redis | None,
    *,
    recipient_id: UUID,
    recipient_type: RecipientType,
    title: str,
    message: str,
    severity: NotificationSeverity = NotificationSeverity.INFO,
    related_id: UUID | None = None,
    related_type: RelatedType | None = None,
) -> Notification:
    """Create, commit and publish a single notification."""
    created = await create_notification(
        db,
        recipient_id=recipient_id,
        recipient_type=recipient_type,
        title=title,
        message=message,
        severity=severity,
        related_id=related_id,
        related_type=related_type,
    )
    await db.commit()
    await publish_events(redis, [created.event])
    return created.notification


async def recipient_ids_for_user(db: AsyncSession, user: CurrentUser) -> list[UUID]:
    """
    Every recipient id whose notifications this user may read.

    Admins read their own; teachers also read those addressed to the
    teacher records linked to their profile.
    """
    ids = [user.id]
    if not user.is_admin:
        ids.extend(await teacher_repository.list_ids_for_profile(db, user.id))
    return ids


async def list_notifications(
    db: AsyncSession,
    user: CurrentUser,
    unread_only: bool = False,
    limit: int = NOTIFICATIONS_PAGE_SIZE,
) -> list[Notification]:
    recipient_ids = await recipient_ids_for_user(db, user)
    return await repository.list_for_recipients(
        db, recipient_ids, unread_only=unread_only, limit=limit
    )


async def get_unread_count(db: AsyncSession, user: CurrentUser) -> int:
    recipient_ids = await recipient_ids_for_user(db, user)
    return await repository.count_unread(db, recipient_ids)


async def mark_as_read(db: AsyncSession, user: CurrentUser, notification_id: UUID) -> Notification:
    """
    Flip a notification's read flag.

    Raises:
        NotificationNotFoundError: If it does not exist or belongs to someone else
    """
    recipient_ids = await recipient_ids_for_user(db, user)
    notification = await repository.get_for_recipients(db, notification_id, recipient_ids)
    if notification is None:
        raise NotificationNotFoundError(notification_id)

    if not notification.is_read:
        notification.is_read = True
        await db.commit()

    return notification


async def mark_all_as_read(db: AsyncSession, user: CurrentUser) -> int:
    recipient_ids = await recipient_ids_for_user(db, user)
    updated = await repository.mark_all_read(db, recipient_ids)
    await db.commit()
    logger.info(f"Marked {updated} notification(s) read for {user.id}")
    return updated
