"""
URL Token Repository

Database operations for url_validations rows.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import TokenType, UrlValidation


async def create(
    db: AsyncSession,
    *,
    token_hash: str,
    token_type: TokenType,
    expires_at: datetime,
    user_id: UUID | None = None,
    teacher_id: UUID | None = None,
) -> UrlValidation:
    record = UrlValidation(
        token_hash=token_hash,
        token_type=token_type,
        expires_at=expires_at,
        user_id=user_id,
        teacher_id=teacher_id,
        is_valid=True,
        validation_count=0,
    )
    db.add(record)
    await db.flush()
    return record


async def get_by_hash(
    db: AsyncSession,
    token_hash: str,
    token_type: TokenType,
) -> UrlValidation | None:
    result = await db.execute(
        select(UrlValidation).where(
            UrlValidation.token_hash == token_hash,
            UrlValidation.token_type == token_type,
        )
    )
    return result.scalar_one_or_none()


async def invalidate_for_teacher(db: AsyncSession, teacher_id: UUID, token_type: TokenType) -> None:
    await db.execute(
        update(UrlValidation)
        .where(
            UrlValidation.teacher_id == teacher_id,
            UrlValidation.token_type == token_type,
            UrlValidation.is_valid.is_(True),
        )
        .values(is_valid=False)
    )


async def assign_user_for_teacher(
    db: AsyncSession, teacher_id: UUID, user_id: UUID, token_type: TokenType
) -> None:
    """Attach a user to every token row issued for a teacher."""
    await db.execute(
        update(UrlValidation)
        .where(UrlValidation.teacher_id == teacher_id, UrlValidation.token_type == token_type)
        .values(user_id=user_id)
    )


async def invalidate_for_user(db: AsyncSession, user_id: UUID, token_type: TokenType) -> None:
    await db.execute(
        update(UrlValidation)
        .where(
            UrlValidation.user_id == user_id,
            UrlValidation.token_type == token_type,
            UrlValidation.is_valid.is_(True),
        )
        .values(is_valid=False)
    )


async def invalidate_expired(db: AsyncSession, now: datetime) -> int:
    """Mark every still-valid expired token invalid. Returns rows updated."""
    result = await db.execute(
        update(UrlValidation)
        .where(UrlValidation.is_valid.is_(True), UrlValidation.expires_at <= now)
        .values(is_valid=False)
    )
    return result.rowcount or 0
