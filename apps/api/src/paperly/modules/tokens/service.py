"""
URL Token Service

Issues and validates the opaque tokens embedded in links:
submission (7 days), invitation (7 days), password reset (1 hour) and
email verification (24 hours).

Validation is a linear check, in this order:
1. Rate limited (only when a client IP is supplied): RATE_LIMITED
2. Unknown token: INVALID_TOKEN
3. Expired: the row is marked invalid and TOKEN_EXPIRED is returned.
   Expiry is checked before validity, so once a token has expired every
   later attempt answers TOKEN_EXPIRED.
4. Marked invalid (consumed or replaced): TOKEN_INVALID
5. Otherwise the validation count is incremented, the last client is
   recorded, an audit event is written and the verdict is a success.

Tokens stay valid for repeated validation until they expire. They are
invalidated when consumed (submission recorded, password reset, email
verified) or when a new token replaces them.

Security considerations:
- Tokens come from `secrets` (32 random bytes, 64 hex characters)
- Only SHA-256 hashes are stored in url_validations
- Token values are never logged
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.exceptions import ServiceError
from paperly.core.security import generate_url_token, hash_token
from paperly.modules.rate_limits.service import URL_VALIDATION_POLICY, check_rate_limit
from paperly.modules.realtime.events import (
    TEACHER_EVENTS_CHANNEL,
    TokenCreatedData,
    TokenCreatedEvent,
)
from paperly.modules.realtime.models import RealtimeEvent
from paperly.modules.realtime.service import create_realtime_event
from paperly.modules.teachers import repository as teacher_repository
from paperly.modules.teachers.exceptions import TeacherNotFoundError
from paperly.modules.teachers.models import Teacher
from paperly.modules.tokens import repository
from paperly.modules.tokens.models import TokenType, UrlValidation
from paperly.modules.users.models import Profile, SecurityEventType
from paperly.modules.users.repository import UserRepository
from paperly.modules.users.service import log_security_event

logger = logging.getLogger(__name__)

SUBMISSION_TOKEN_LIFETIME = timedelta(days=7)
RESET_TOKEN_LIFETIME = timedelta(hours=1)
VERIFICATION_TOKEN_LIFETIME = timedelta(hours=24)


class TokenValidationCode(str, Enum):
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    RATE_LIMITED = "RATE_LIMITED"


_FAILURE_MESSAGES = {
    TokenValidationCode.INVALID_TOKEN: "This link is not valid.",
    TokenValidationCode.TOKEN_EXPIRED: "This link has expired.",
    TokenValidationCode.TOKEN_INVALID: "This link is no longer valid.",
    TokenValidationCode.RATE_LIMITED: "Too many attempts. Please try again shortly.",
}


@dataclass(frozen=True)
class TokenValidationResult:
    """Verdict of a validation attempt."""

    valid: bool
    token_type: TokenType
    error_code: TokenValidationCode | None = None
    user_id: UUID | None = None
    teacher_id: UUID | None = None
    validation_count: int = 0

    @property
    def message(self) -> str | None:
        return _FAILURE_MESSAGES.get(self.error_code) if self.error_code else None

    @classmethod
    def failure(cls, token_type: TokenType, code: TokenValidationCode) -> "TokenValidationResult":
        return cls(valid=False, token_type=token_type, error_code=code)


@dataclass
class IssuedSubmissionToken:
    """A freshly issued submission token and the event announcing it."""

    teacher: Teacher
    token: str
    event: RealtimeEvent


async def record_submission_token(
    db: AsyncSession,
    teacher: Teacher,
    token: str,
) -> RealtimeEvent:
    """
    Track a teacher's current submission token (flush only).

    Inserts the url_validations row and the `token_created` event on the
    teacher_events channel.
    """
    await repository.create(
        db,
        token_hash=hash_token(token),
        token_type=TokenType.SUBMISSION,
        expires_at=teacher.token_expires_at,
        user_id=teacher.profile_id,
        teacher_id=teacher.id,
    )
    return await create_realtime_event(
        db,
        TokenCreatedEvent(
            data=TokenCreatedData(teacher_id=teacher.id, expires_at=teacher.token_expires_at)
        ),
        channel=TEACHER_EVENTS_CHANNEL,
        recipient_id=teacher.id,
    )


async def create_submission_token(
    db: AsyncSession,
    teacher_id: UUID,
    expires_in: timedelta = SUBMISSION_TOKEN_LIFETIME,
    now: datetime | None = None,
) -> IssuedSubmissionToken:
    """
    Issue a new submission token for a teacher, replacing the old one.

    The previous token's tracking row is invalidated, so old links answer
    TOKEN_INVALID. Flush only; the caller commits and publishes the event.

    Args:
        db: Database session
        teacher_id: Teacher to issue for
        expires_in: Token lifetime (default 7 days)
        now: Override for the current time

    Returns:
        IssuedSubmissionToken

    Raises:
        TeacherNotFoundError: If the teacher does not exist
    """
    now = now or datetime.now(UTC)

    teacher = await teacher_repository.get_by_id(db, teacher_id)
    if teacher is None:
        raise TeacherNotFoundError(teacher_id)

    await repository.invalidate_for_teacher(db, teacher.id, TokenType.SUBMISSION)

    token = generate_url_token()
    teacher.submission_token = token
    teacher.token_expires_at = now + expires_in

    event = await record_submission_token(db, teacher, token)
    logger.info(f"Issued submission token for teacher {teacher.id}")
    return IssuedSubmissionToken(teacher=teacher, token=token, event=event)


async def _validate(
    db: AsyncSession,
    token: str,
    token_type: TokenType,
    ip_address: str | None,
    user_agent: str | None,
    now: datetime,
) -> tuple[TokenValidationResult, UrlValidation | None]:
    if ip_address:
        decision = await check_rate_limit(
            db,
            ip_address,
            URL_VALIDATION_POLICY.action,
            URL_VALIDATION_POLICY.max_attempts,
            URL_VALIDATION_POLICY.window,
            now=now,
        )
        if not decision.allowed:
            return TokenValidationResult.failure(token_type, TokenValidationCode.RATE_LIMITED), None

    record = await repository.get_by_hash(db, hash_token(token), token_type)

    if record is None:
        logger.warning(f"Validation of unknown {token_type.value} token")
        return TokenValidationResult.failure(token_type, TokenValidationCode.INVALID_TOKEN), None

    if record.is_expired(now):
        if record.is_valid:
            record.is_valid = False
            await db.commit()
        return TokenValidationResult.failure(token_type, TokenValidationCode.TOKEN_EXPIRED), record

    if not record.is_valid:
        return TokenValidationResult.failure(token_type, TokenValidationCode.TOKEN_INVALID), record

    record.validation_count += 1
    record.last_validated_at = now
    if ip_address:
        record.ip_address = ip_address
    if user_agent:
        record.user_agent = user_agent

    await log_security_event(
        db,
        record.user_id,
        SecurityEventType.URL_VALIDATION,
        {
            "token_type": token_type.value,
            "teacher_id": str(record.teacher_id) if record.teacher_id else None,
            "validation_count": record.validation_count,
        },
        ip_address,
        user_agent,
    )
    await db.commit()

    result = TokenValidationResult(
        valid=True,
        token_type=token_type,
        user_id=record.user_id,
        teacher_id=record.teacher_id,
        validation_count=record.validation_count,
    )
    return result, record


async def validate_url_token(
    db: AsyncSession,
    token: str,
    token_type: TokenType,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> TokenValidationResult:
    """
    Validate a link token. Commits the session.

    Args:
        db: Database session
        token: Token from the link
        token_type: Expected token type
        ip_address: Client IP, used for rate limiting and audit
        user_agent: Client user agent, for audit
        now: Override for the current time

    Returns:
        TokenValidationResult (failures are verdicts, not exceptions)
    """
    result, _ = await _validate(
        db, token, token_type, ip_address, user_agent, now or datetime.now(UTC)
    )
    return result


async def redeem_url_token(
    db: AsyncSession,
    token: str,
    token_type: TokenType,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> tuple[TokenValidationResult, UrlValidation | None]:
    """
    Validate a single-use token and consume it.

    The validation itself is committed; the consumption is only flushed,
    so it commits together with whatever the caller does with the token.
    """
    result, record = await _validate(
        db, token, token_type, ip_address, user_agent, now or datetime.now(UTC)
    )
    if result.valid and record is not None:
        consume_url_token(record)
        await db.flush()
    return result, record


def consume_url_token(record: UrlValidation) -> None:
    """Mark a token used. It answers TOKEN_INVALID from now on."""
    record.is_valid = False


async def consume_submission_token(db: AsyncSession, teacher: Teacher) -> None:
    """Invalidate the tracking row of a teacher's current submission token (flush only)."""
    await repository.invalidate_for_teacher(db, teacher.id, TokenType.SUBMISSION)


async def link_submission_tokens(db: AsyncSession, teacher: Teacher) -> None:
    """Point a teacher's submission tokens at their new profile (flush only)."""
    await repository.assign_user_for_teacher(
        db, teacher.id, teacher.profile_id, TokenType.SUBMISSION
    )


async def create_password_reset_token(
    db: AsyncSession,
    email: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> tuple[str, Profile] | None:
    """
    Issue a one-hour reset token for an active account (flush only).

    Earlier unused reset tokens for the account are invalidated.

    Returns:
        (token, profile), or None when no active account uses the email
    """
    now = now or datetime.now(UTC)

    profile = await UserRepository.get_profile_by_email(db, email)
    if profile is None or not profile.is_active:
        logger.info("Password reset requested for unknown or inactive account")
        return None

    await repository.invalidate_for_user(db, profile.id, TokenType.RESET)

    token = generate_url_token()
    await repository.create(
        db,
        token_hash=hash_token(token),
        token_type=TokenType.RESET,
        expires_at=now + RESET_TOKEN_LIFETIME,
        user_id=profile.id,
    )
    await log_security_event(
        db,
        profile.id,
        SecurityEventType.PASSWORD_RESET_REQUESTED,
        {},
        ip_address,
        user_agent,
    )
    return token, profile


async def create_email_verification_token(
    db: AsyncSession,
    user_id: UUID,
    now: datetime | None = None,
) -> str:
    """Issue a 24-hour email verification token (flush only)."""
    now = now or datetime.now(UTC)

    await repository.invalidate_for_user(db, user_id, TokenType.VERIFICATION)

    token = generate_url_token()
    await repository.create(
        db,
        token_hash=hash_token(token),
        token_type=TokenType.VERIFICATION,
        expires_at=now + VERIFICATION_TOKEN_LIFETIME,
        user_id=user_id,
    )
    return token


_REJECTION_STATUS = {
    TokenValidationCode.INVALID_TOKEN: 404,
    TokenValidationCode.TOKEN_EXPIRED: 400,
    TokenValidationCode.TOKEN_INVALID: 400,
    TokenValidationCode.RATE_LIMITED: 429,
}


class TokenRejectedError(ServiceError):
    """Raised by endpoints that need a valid token to proceed."""

    def __init__(self, result: TokenValidationResult):
        self.result = result
        # Valid results only land here when the token has no owner
        code = result.error_code or TokenValidationCode.TOKEN_INVALID
        if code == TokenValidationCode.RATE_LIMITED:
            self.retry_after_seconds = int(URL_VALIDATION_POLICY.window.total_seconds())
        super().__init__(
            message=result.message or _FAILURE_MESSAGES[code],
            error_code=code.value,
            status_code=_REJECTION_STATUS[code],
        )
