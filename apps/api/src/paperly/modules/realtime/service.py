"""
Realtime Service

Records events in the `realtime_events` table and publishes them on Redis
channels.

Recording happens inside the caller's transaction (flush only); publishing
happens after the caller commits, so clients never see an event for a
write that was rolled back. Publishing is best-effort and at-most-once:
failures are logged and swallowed, and clients reconcile by pulling
`list_recent_events` after reconnecting.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from redis.asyncio import Redis
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.auth import CurrentUser
from paperly.core.redis import publish
from paperly.modules.realtime.events import (
    ADMIN_CHANNEL,
    TEACHER_EVENTS_CHANNEL,
    RealtimeEventPayload,
    teacher_channel,
    user_channel,
)
from paperly.modules.realtime.models import RealtimeEvent
from paperly.modules.teachers import repository as teacher_repository

logger = logging.getLogger(__name__)

RECENT_EVENTS_LIMIT = 100


def to_message(event: RealtimeEvent) -> dict[str, Any]:
    """Wire form of a stored event."""
    return {
        "id": str(event.id),
        "event_type": event.event_type,
        "channel": event.channel,
        "recipient_id": str(event.recipient_id) if event.recipient_id else None,
        "data": event.data,
        "created_at": event.created_at.isoformat() if event.created_at else None,
    }


async def create_realtime_event(
    db: AsyncSession,
    payload: RealtimeEventPayload,
    channel: str,
    recipient_id: UUID | None = None,
) -> RealtimeEvent:
    """
    Record an event in the current transaction.

    Args:
        db: Database session
        payload: Typed event
        channel: Channel it will be published on
        recipient_id: Profile or teacher the event is addressed to, if any

    Returns:
        The stored RealtimeEvent (not yet published)
    """
    event = RealtimeEvent(
        event_type=payload.event_type,
        recipient_id=recipient_id,
        channel=channel,
        data=payload.data.model_dump(mode="json"),
        created_at=datetime.now(UTC),
    )
    db.add(event)
    await db.flush()
    return event


async def publish_events(redis: Redis | None, events: list[RealtimeEvent]) -> int:
    """
    Publish already-committed events. Never raises.

    Returns:
        Number of events successfully published
    """
    published = 0
    for event in events:
        if await publish(redis, event.channel, to_message(event)):
            published += 1
    if events and published < len(events):
        logger.warning(f"Published {published}/{len(events)} realtime events")
    return published


async def list_recent_events(
    db: AsyncSession,
    channels: list[str],
    since: datetime | None = None,
    limit: int = RECENT_EVENTS_LIMIT,
) -> list[RealtimeEvent]:
    """Events on the given channels, oldest first, optionally after `since`."""
    query = select(RealtimeEvent).where(RealtimeEvent.channel.in_(channels))
    if since is not None:
        query = query.where(RealtimeEvent.created_at > since)
    query = query.order_by(RealtimeEvent.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return list(reversed(result.scalars().all()))


async def delete_events_older_than(db: AsyncSession, cutoff: datetime) -> int:
    result = await db.execute(delete(RealtimeEvent).where(RealtimeEvent.created_at < cutoff))
    return result.rowcount or 0


async def channels_for_user(db: AsyncSession, user: CurrentUser) -> list[str]:
    """
    Channels a user may listen on.

    Everyone gets their own user channel. Admins also get the admin
    broadcast and the token lifecycle channel; teachers get the channel
    of each teacher record linked to their profile.
    """
    channels = [user_channel(user.id)]
    if user.is_admin:
        channels.extend([ADMIN_CHANNEL, TEACHER_EVENTS_CHANNEL])
    else:
        teacher_ids = await teacher_repository.list_ids_for_profile(db, user.id)
        channels.extend(teacher_channel(teacher_id) for teacher_id in teacher_ids)
    return channels
