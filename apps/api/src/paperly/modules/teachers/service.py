"""
Teacher Service Layer

Business logic for inviting teachers and for the public, token-gated
teacher endpoints.

Workflow:
1. An admin adds a teacher: the teacher row, its submission token and
   the admin's "Teacher Added" notification are written in one
   transaction, then the invitation email goes out.
2. The teacher opens {CLIENT_URL}/submit/{token}; the page validates
   the token and shows the teacher's details.
3. Optionally the teacher creates an account through
   {CLIENT_URL}/teacher/signup/{token}, which links a profile to the
   teacher record exactly once.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from redis.asyncio import Redis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.auth import CurrentUser
from paperly.core.config import settings
from paperly.core.email import send_teacher_invitation
from paperly.core.security import generate_url_token, hash_password
from paperly.modules.auth.service import AuthResult, issue_auth_tokens
from paperly.modules.notifications.models import NotificationSeverity, RecipientType, RelatedType
from paperly.modules.notifications.service import create_notification
from paperly.modules.realtime.service import publish_events
from paperly.modules.teachers import repository
from paperly.modules.teachers.exceptions import (
    AlreadyRegisteredError,
    SubmissionAlreadyCompletedError,
    TeacherExistsError,
    TeacherNotFoundError,
)
from paperly.modules.teachers.models import Teacher
from paperly.modules.teachers.schemas import TeacherCreate, TeacherSignup
from paperly.modules.tokens.models import TokenType
from paperly.modules.tokens.service import (
    SUBMISSION_TOKEN_LIFETIME,
    TokenRejectedError,
    TokenValidationCode,
    TokenValidationResult,
    create_submission_token,
    link_submission_tokens,
    record_submission_token,
    validate_url_token,
)
from paperly.modules.users.models import SecurityEventType, UserRole
from paperly.modules.users.repository import UserRepository
from paperly.modules.users.service import EmailExistsError, log_security_event

logger = logging.getLogger(__name__)


def submission_url(token: str) -> str:
    return f"{settings.client_url}/submit/{token}"


def signup_url(token: str) -> str:
    return f"{settings.client_url}/teacher/signup/{token}"


async def _send_invitation(teacher: Teacher, token: str) -> None:
    await send_teacher_invitation(
        to_email=teacher.email,
        teacher_name=teacher.name,
        submission_url=submission_url(token),
        expires_in_days=SUBMISSION_TOKEN_LIFETIME.days,
    )


async def add_teacher(
    db: AsyncSession,
    redis: Redis | None,
    admin: CurrentUser,
    data: TeacherCreate,
    now: datetime | None = None,
) -> tuple[Teacher, str]:
    """
    Add a teacher and send them a submission link.

    Args:
        db: Database session
        redis: Redis client for live events (None if unavailable)
        admin: Inviting admin
        data: Teacher details
        now: Override for the current time

    Returns:
        Tuple of (teacher, submission token)

    Raises:
        TeacherExistsError: If a teacher with this email already exists
    """
    now = now or datetime.now(UTC)

    if await repository.get_by_email(db, data.email):
        raise TeacherExistsError(data.email)

    token = generate_url_token()

    try:
        teacher = await repository.create(
            db,
            name=data.name,
            email=data.email,
            phone=data.phone,
            submission_token=token,
            token_expires_at=now + SUBMISSION_TOKEN_LIFETIME,
            added_by=admin.id,
        )
        token_event = await record_submission_token(db, teacher, token)
        created = await create_notification(
            db,
            recipient_id=admin.id,
            recipient_type=RecipientType.ADMIN,
            title="Teacher Added",
            message=f"{teacher.name} has been invited to submit a question paper.",
            severity=NotificationSeverity.SUCCESS,
            related_id=teacher.id,
            related_type=RelatedType.TEACHER,
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise TeacherExistsError(data.email) from e

    await db.refresh(teacher)
    logger.info(f"Teacher {teacher.id} added by admin {admin.id}")

    await publish_events(redis, [token_event, created.event])
    await _send_invitation(teacher, token)

    return teacher, token


async def list_teachers(
    db: AsyncSession,
    *,
    search: str | None = None,
    has_submitted: bool | None = None,
    sort_order: str = "desc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Teacher], int]:
    return await repository.list_teachers(
        db,
        search=search,
        has_submitted=has_submitted,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )


async def regenerate_token(
    db: AsyncSession,
    redis: Redis | None,
    teacher_id: UUID,
    now: datetime | None = None,
) -> tuple[Teacher, str]:
    """
    Replace a teacher's submission link and email the new one.

    The old link stops working immediately.

    Raises:
        TeacherNotFoundError: If the teacher does not exist
        SubmissionAlreadyCompletedError: If the teacher has already submitted
    """
    teacher = await repository.get_by_id(db, teacher_id)
    if teacher is None:
        raise TeacherNotFoundError(teacher_id)
    if teacher.has_submitted:
        raise SubmissionAlreadyCompletedError()

    issued = await create_submission_token(db, teacher_id, now=now)
    await db.commit()
    await db.refresh(issued.teacher)

    await publish_events(redis, [issued.event])
    await _send_invitation(issued.teacher, issued.token)

    return issued.teacher, issued.token


async def get_teacher_for_token(
    db: AsyncSession,
    token: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[TokenValidationResult, Teacher | None]:
    """
    Validate a submission link and load the teacher it belongs to.

    A teacher who has already submitted is returned alongside the failed
    verdict, so the page can say so instead of showing a generic error.
    """
    result = await validate_url_token(db, token, TokenType.SUBMISSION, ip_address, user_agent)

    if result.valid and result.teacher_id is not None:
        return result, await repository.get_by_id(db, result.teacher_id)

    if result.error_code == TokenValidationCode.TOKEN_INVALID:
        teacher = await repository.get_by_token(db, token)
        if teacher is not None and teacher.has_submitted:
            return result, teacher

    return result, None


async def signup_via_token(
    db: AsyncSession,
    redis: Redis | None,
    token: str,
    data: TeacherSignup,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[AuthResult, Teacher]:
    """
    Create a teacher account from a submission link and sign in.

    The email is taken from the teacher record and is treated as verified,
    since the link was delivered to it. A teacher who has already submitted
    may still sign up with their (consumed) link to follow the review.

    Raises:
        TokenRejectedError: Link unknown, expired or no longer valid
        TeacherNotFoundError: Teacher deleted since the link was issued
        AlreadyRegisteredError: The teacher already has an account
        EmailExistsError: Another account already uses the teacher's email
    """
    result, teacher = await get_teacher_for_token(db, token, ip_address, user_agent)
    if teacher is None:
        if result.valid:
            raise TeacherNotFoundError(result.teacher_id)
        raise TokenRejectedError(result)

    if teacher.profile_id is not None:
        raise AlreadyRegisteredError()
    if await UserRepository.email_exists(db, teacher.email):
        raise EmailExistsError()

    try:
        profile = await UserRepository.create(
            db,
            email=teacher.email,
            password_hash=hash_password(data.password),
            full_name=data.full_name or teacher.name,
            role=UserRole.TEACHER,
            phone=teacher.phone,
            email_verified=True,
        )
        teacher.profile_id = profile.id
        await link_submission_tokens(db, teacher)
        await log_security_event(
            db,
            profile.id,
            SecurityEventType.ACCOUNT_CREATED,
            {"teacher_id": str(teacher.id), "via": "submission_link"},
            ip_address,
            user_agent,
        )
        auth = await issue_auth_tokens(db, profile, ip_address, user_agent)
        events = []
        if teacher.added_by is not None:
            created = await create_notification(
                db,
                recipient_id=teacher.added_by,
                recipient_type=RecipientType.ADMIN,
                title="Teacher Registered",
                message=f"{teacher.name} has created an account.",
                severity=NotificationSeverity.INFO,
                related_id=teacher.id,
                related_type=RelatedType.TEACHER,
            )
            events.append(created.event)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise AlreadyRegisteredError() from e

    await db.refresh(profile)
    logger.info(f"Teacher {teacher.id} signed up as user {profile.id}")

    await publish_events(redis, events)
    return auth, teacher
