"""
User Service Layer

Profile reads and updates, login bookkeeping, refresh-token sessions and
the security audit log.

Profile reads go through an injected TTLCache keyed by user id
(`get_profile_fast`). Every profile write invalidates the entry, so an
update followed by a read always reflects the new values.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.cache import TTLCache
from paperly.core.config import settings
from paperly.core.exceptions import ConflictError, NotFoundError
from paperly.core.security import hash_token
from paperly.modules.users.models import Profile, SecurityEvent, SecurityEventType, UserSession
from paperly.modules.users.repository import (
    SecurityEventRepository,
    SessionRepository,
    UserRepository,
)
from paperly.modules.users.schemas import ProfileResponse, ProfileUpdate

logger = logging.getLogger(__name__)

MAX_ACTIVE_SESSIONS = 5
SECURITY_EVENTS_PAGE_SIZE = 20


class ProfileNotFoundError(NotFoundError):
    def __init__(self, user_id: UUID | None = None):
        message = f"Profile {user_id} not found" if user_id else "Profile not found"
        super().__init__(message=message, error_code="PROFILE_NOT_FOUND")


class EmailExistsError(ConflictError):
    def __init__(self):
        super().__init__(
            message="An account with this email already exists",
            error_code="EMAIL_EXISTS",
        )


async def get_profile_fast(
    db: AsyncSession,
    cache: TTLCache[ProfileResponse],
    user_id: UUID,
) -> ProfileResponse | None:
    """
    Read a profile through the cache.

    Args:
        db: Database session
        cache: Profile cache
        user_id: Profile id

    Returns:
        The profile, or None if it does not exist
    """
    cached = cache.get(user_id)
    if cached is not None:
        return cached

    profile = await UserRepository.get_profile(db, user_id)
    if profile is None:
        return None

    snapshot = ProfileResponse.model_validate(profile)
    cache.set(user_id, snapshot)
    return snapshot


async def update_profile(
    db: AsyncSession,
    cache: TTLCache[ProfileResponse],
    user_id: UUID,
    data: ProfileUpdate,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ProfileResponse:
    """
    Apply a profile update, audit it and refresh the cache.

    Raises:
        ProfileNotFoundError: If the profile does not exist
    """
    profile = await UserRepository.get_profile(db, user_id)
    if profile is None:
        raise ProfileNotFoundError(user_id)

    changes = data.model_dump(exclude_unset=True)
    if changes:
        await UserRepository.update_profile(db, profile, **changes)

    await log_security_event(
        db,
        user_id,
        SecurityEventType.PROFILE_UPDATED,
        {"fields": sorted(changes)},
        ip_address,
        user_agent,
    )
    await db.commit()
    await db.refresh(profile)

    cache.invalidate(user_id)
    snapshot = ProfileResponse.model_validate(profile)
    cache.set(user_id, snapshot)

    logger.info(f"Profile {user_id} updated: {sorted(changes)}")
    return snapshot


async def update_last_login(
    db: AsyncSession, profile: Profile, now: datetime | None = None
) -> None:
    """Record a successful login: bump the counter and clear any lockout (flush only)."""
    await UserRepository.update_profile(
        db,
        profile,
        last_login=now or datetime.now(UTC),
        login_count=(profile.login_count or 0) + 1,
        failed_login_attempts=0,
        locked_until=None,
    )


async def create_user_session(
    db: AsyncSession,
    user_id: UUID,
    refresh_token: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    expires_at: datetime | None = None,
) -> UserSession:
    """
    Store a session for a refresh token, revoking the oldest sessions
    beyond MAX_ACTIVE_SESSIONS (flush only).
    """
    if expires_at is None:
        expires_at = datetime.now(UTC) + timedelta(days=settings.refresh_token_expire_days)
    session = await SessionRepository.create(
        db,
        user_id=user_id,
        refresh_token_hash=hash_token(refresh_token),
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    active = await SessionRepository.list_active_for_user(db, user_id)
    stale = [s.id for s in active if s.id != session.id][MAX_ACTIVE_SESSIONS - 1 :]
    if stale:
        await SessionRepository.deactivate(db, stale)
        logger.info(f"Revoked {len(stale)} old session(s) for user {user_id}")

    return session


async def log_security_event(
    db: AsyncSession,
    user_id: UUID | None,
    event_type: SecurityEventType | str,
    event_data: dict[str, Any] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """Append an audit record (flush only)."""
    event_name = event_type.value if isinstance(event_type, SecurityEventType) else event_type
    return await SecurityEventRepository.create(
        db,
        user_id=user_id,
        event_type=event_name,
        event_data=event_data,
        ip_address=ip_address,
        user_agent=user_agent,
    )


async def get_security_events(
    db: AsyncSession,
    user_id: UUID,
    limit: int = SECURITY_EVENTS_PAGE_SIZE,
) -> list[SecurityEvent]:
    return await SecurityEventRepository.list_for_user(db, user_id, limit=limit)
