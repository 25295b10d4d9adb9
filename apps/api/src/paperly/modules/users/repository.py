"""
User Repository

Database operations for identities, profiles, sessions and security events.
Methods flush but never commit; the calling service owns the transaction.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.modules.users.models import Profile, SecurityEvent, User, UserRole, UserSession

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for identity and profile database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        full_name: str,
        role: UserRole,
        phone: str | None = None,
        email_verified: bool = False,
    ) -> Profile:
        """
        Create an identity and its profile in the current transaction.

        Args:
            db: Database session
            email: Email address (unique, stored lower-case)
            password_hash: Hashed password
            full_name: Display name
            role: User's role
            phone: Phone number (optional)
            email_verified: Whether the email is already verified

        Returns:
            The created Profile (its id is the identity's id)
        """
        email = email.strip().lower()
        user = User(email=email, password_hash=password_hash)
        db.add(user)
        await db.flush()

        profile = Profile(
            id=user.id,
            email=email,
            full_name=full_name,
            phone=phone,
            role=role,
            is_active=True,
            email_verified=email_verified,
            failed_login_attempts=0,
            login_count=0,
        )
        db.add(profile)
        await db.flush()

        logger.info(f"Created user: {user.id} ({role.value})")
        return profile

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_profile(db: AsyncSession, user_id: UUID) -> Profile | None:
        result = await db.execute(select(Profile).where(Profile.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_profile_by_email(db: AsyncSession, email: str) -> Profile | None:
        result = await db.execute(select(Profile).where(Profile.email == email.strip().lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        """Check whether an identity already uses this email."""
        return await UserRepository.get_user_by_email(db, email) is not None

    @staticmethod
    async def update_profile(db: AsyncSession, profile: Profile, **fields: Any) -> Profile:
        """Set the given attributes on a profile and flush."""
        for key, value in fields.items():
            setattr(profile, key, value)
        await db.flush()
        return profile

    @staticmethod
    async def set_password_hash(db: AsyncSession, user_id: UUID, password_hash: str) -> None:
        await db.execute(update(User).where(User.id == user_id).values(password_hash=password_hash))


class SessionRepository:
    """Repository for refresh-token sessions."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: UUID,
        refresh_token_hash: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> UserSession:
        session = UserSession(
            user_id=user_id,
            refresh_token_hash=refresh_token_hash,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
            is_active=True,
        )
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def get_active_by_hash(db: AsyncSession, refresh_token_hash: str) -> UserSession | None:
        result = await db.execute(
            select(UserSession).where(
                UserSession.refresh_token_hash == refresh_token_hash,
                UserSession.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active_for_user(db: AsyncSession, user_id: UUID) -> list[UserSession]:
        """Active sessions for a user, newest first."""
        result = await db.execute(
            select(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .order_by(UserSession.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def deactivate(db: AsyncSession, session_ids: list[UUID]) -> None:
        if not session_ids:
            return
        await db.execute(
            update(UserSession).where(UserSession.id.in_(session_ids)).values(is_active=False)
        )

    @staticmethod
    async def deactivate_all_for_user(db: AsyncSession, user_id: UUID) -> None:
        await db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .values(is_active=False)
        )

    @staticmethod
    async def deactivate_expired(db: AsyncSession, now: datetime) -> int:
        """Deactivate sessions past their expiry. Returns rows updated."""
        result = await db.execute(
            update(UserSession)
            .where(UserSession.is_active.is_(True), UserSession.expires_at < now)
            .values(is_active=False)
        )
        return result.rowcount or 0


class SecurityEventRepository:
    """Repository for the security audit log."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: UUID | None,
        event_type: str,
        event_data: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SecurityEvent:
        event = SecurityEvent(
            user_id=user_id,
            event_type=event_type,
            event_data=event_data or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(event)
        await db.flush()
        return event

    @staticmethod
    async def list_for_user(
        db: AsyncSession, user_id: UUID, limit: int = 20
    ) -> list[SecurityEvent]:
        """Most recent events for a user, newest first."""
        result = await db.execute(
            select(SecurityEvent)
            .where(SecurityEvent.user_id == user_id)
            .order_by(SecurityEvent.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def delete_older_than(db: AsyncSession, cutoff: datetime) -> int:
        result = await db.execute(delete(SecurityEvent).where(SecurityEvent.created_at < cutoff))
        return result.rowcount or 0
