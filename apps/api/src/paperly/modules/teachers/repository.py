"""
Teacher Repository

Database operations for teachers.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Teacher


async def create(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    phone: str,
    submission_token: str,
    token_expires_at: datetime,
    added_by: UUID | None,
) -> Teacher:
    teacher = Teacher(
        name=name,
        email=email,
        phone=phone,
        submission_token=submission_token,
        token_expires_at=token_expires_at,
        has_submitted=False,
        added_by=added_by,
    )
    db.add(teacher)
    await db.flush()
    return teacher


async def get_by_id(db: AsyncSession, teacher_id: UUID) -> Teacher | None:
    return await db.get(Teacher, teacher_id)


async def get_by_email(db: AsyncSession, email: str) -> Teacher | None:
    result = await db.execute(select(Teacher).where(Teacher.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_by_token(db: AsyncSession, token: str) -> Teacher | None:
    result = await db.execute(select(Teacher).where(Teacher.submission_token == token))
    return result.scalar_one_or_none()


async def get_by_token_for_update(db: AsyncSession, token: str) -> Teacher | None:
    """Get the teacher owning a token, locking the row for this transaction."""
    result = await db.execute(
        select(Teacher).where(Teacher.submission_token == token).with_for_update()
    )
    return result.scalar_one_or_none()


async def list_ids_for_profile(db: AsyncSession, profile_id: UUID) -> list[UUID]:
    result = await db.execute(select(Teacher.id).where(Teacher.profile_id == profile_id))
    return list(result.scalars().all())


async def list_teachers(
    db: AsyncSession,
    *,
    search: str | None = None,
    has_submitted: bool | None = None,
    sort_order: str = "desc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Teacher], int]:
    """
    Teachers with optional filters and pagination.

    Returns:
        Tuple of (teachers, total count matching filters)
    """
    query = select(Teacher)

    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Teacher.name.ilike(pattern), Teacher.email.ilike(pattern)))

    if has_submitted is not None:
        query = query.where(Teacher.has_submitted.is_(has_submitted))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    order = desc if sort_order.lower() == "desc" else asc
    query = query.order_by(order(Teacher.created_at)).offset(skip).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all()), total
