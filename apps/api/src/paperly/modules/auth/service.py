"""
Authentication Service Layer

Registration, login, token refresh and the password/email flows.

Tokens:
- Access tokens (15 minutes) carry email, role and name claims and are
  never stored.
- Refresh tokens (7 days) are stored as SHA-256 hashes in user_sessions
  and rotated on every refresh.

Login is rate limited by email before credentials are checked, so the
sixth attempt inside 15 minutes is rejected whether or not the password
is right. Separately, five consecutive wrong passwords lock the account
for 15 minutes.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.cache import TTLCache
from paperly.core.email import send_email_verification, send_password_reset
from paperly.core.exceptions import ServiceError, ValidationError
from paperly.core.security import (
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    hash_token,
    verify_password,
)
from paperly.modules.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from paperly.modules.rate_limits.service import (
    FORGOT_PASSWORD_POLICY,
    LOGIN_POLICY,
    RateLimitExceededError,
    enforce_rate_limit,
)
from paperly.modules.tokens.models import TokenType
from paperly.modules.tokens.service import (
    TokenRejectedError,
    create_email_verification_token,
    create_password_reset_token,
    redeem_url_token,
)
from paperly.modules.users.models import Profile, SecurityEventType, UserRole
from paperly.modules.users.repository import SessionRepository, UserRepository
from paperly.modules.users.service import (
    EmailExistsError,
    ProfileNotFoundError,
    create_user_session,
    log_security_event,
    update_last_login,
)

logger = logging.getLogger(__name__)

MAX_FAILED_LOGINS = 5
LOCKOUT_DURATION = timedelta(minutes=15)


class InvalidCredentialsError(ServiceError):
    def __init__(self, message: str = "Invalid email or password."):
        super().__init__(message=message, error_code="INVALID_CREDENTIALS", status_code=401)


class AccountLockedError(ServiceError):
    def __init__(self):
        super().__init__(
            message="Account is temporarily locked due to too many failed attempts.",
            error_code="ACCOUNT_LOCKED",
            status_code=401,
        )


class AccountInactiveError(ServiceError):
    def __init__(self):
        super().__init__(
            message="Your account has been deactivated.",
            error_code="ACCOUNT_INACTIVE",
            status_code=401,
        )


class InvalidRefreshTokenError(ServiceError):
    def __init__(self):
        super().__init__(
            message="Invalid or expired refresh token.",
            error_code="INVALID_REFRESH_TOKEN",
            status_code=401,
        )


class InvalidTokenTypeError(ServiceError):
    def __init__(self):
        super().__init__(
            message="An access token was sent where a refresh token is required.",
            error_code="INVALID_TOKEN_TYPE",
            status_code=401,
        )


@dataclass
class AuthResult:
    """A signed-in user and their new token pair."""

    profile: Profile
    access_token: str
    refresh_token: str


def build_access_token(profile: Profile) -> str:
    return create_access_token(
        subject=str(profile.id),
        additional_claims={
            "email": profile.email,
            "role": profile.role.value,
            "name": profile.full_name,
        },
    )


async def issue_auth_tokens(
    db: AsyncSession,
    profile: Profile,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuthResult:
    """Create an access/refresh pair and its session row (flush only)."""
    access_token = build_access_token(profile)
    refresh_token = create_refresh_token(subject=str(profile.id))
    await create_user_session(db, profile.id, refresh_token, ip_address, user_agent)
    return AuthResult(profile=profile, access_token=access_token, refresh_token=refresh_token)


async def register(
    db: AsyncSession,
    data: RegisterRequest,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuthResult:
    """
    Create an identity and its profile in one transaction and sign in.

    Self-registered accounts are teachers; admins are created with the
    seed script.

    Raises:
        EmailExistsError: If the email is already registered
    """
    if await UserRepository.email_exists(db, data.email):
        raise EmailExistsError()

    try:
        profile = await UserRepository.create(
            db,
            email=data.email,
            password_hash=hash_password(data.password),
            full_name=data.full_name,
            role=UserRole.TEACHER,
            phone=data.phone,
        )
        await log_security_event(
            db, profile.id, SecurityEventType.ACCOUNT_CREATED, {}, ip_address, user_agent
        )
        result = await issue_auth_tokens(db, profile, ip_address, user_agent)
        verification_token = await create_email_verification_token(db, profile.id)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise EmailExistsError() from e

    await db.refresh(profile)
    logger.info(f"Registered user {profile.id}")

    await send_email_verification(profile.email, profile.full_name, verification_token)
    return result


async def _record_login_event(
    db: AsyncSession,
    user_id: UUID | None,
    event_type: SecurityEventType,
    event_data: dict,
    ip_address: str | None,
    user_agent: str | None,
) -> None:
    await log_security_event(db, user_id, event_type, event_data, ip_address, user_agent)
    await db.commit()


async def login(
    db: AsyncSession,
    cache: TTLCache,
    data: LoginRequest,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> AuthResult:
    """
    Authenticate by email and password.

    Raises:
        RateLimitExceededError: Sixth attempt for the email inside 15 minutes
        InvalidCredentialsError: Unknown email or wrong password
        AccountLockedError: Too many consecutive failures
        AccountInactiveError: Account deactivated
    """
    now = now or datetime.now(UTC)
    email = data.email.strip().lower()

    try:
        await enforce_rate_limit(db, email, LOGIN_POLICY, now=now)
    except RateLimitExceededError:
        await _record_login_event(
            db, None, SecurityEventType.LOGIN_RATE_LIMITED, {"email": email}, ip_address, user_agent
        )
        raise

    user = await UserRepository.get_user_by_email(db, email)
    profile = await UserRepository.get_profile(db, user.id) if user else None

    if user is None or profile is None:
        logger.warning("Login attempt for unknown email")
        raise InvalidCredentialsError()

    if profile.is_locked(now):
        await _record_login_event(
            db, profile.id, SecurityEventType.LOGIN_ATTEMPT_LOCKED, {}, ip_address, user_agent
        )
        raise AccountLockedError()

    if not profile.is_active:
        await _record_login_event(
            db, profile.id, SecurityEventType.LOGIN_ATTEMPT_INACTIVE, {}, ip_address, user_agent
        )
        raise AccountInactiveError()

    if not verify_password(data.password, user.password_hash):
        await _register_failed_login(db, profile, now)
        await _record_login_event(
            db,
            profile.id,
            SecurityEventType.LOGIN_FAILED,
            {"reason": "invalid_password", "failed_attempts": profile.failed_login_attempts},
            ip_address,
            user_agent,
        )
        cache.invalidate(profile.id)
        raise InvalidCredentialsError()

    await update_last_login(db, profile, now)
    await log_security_event(
        db, profile.id, SecurityEventType.LOGIN_SUCCESS, {}, ip_address, user_agent
    )
    result = await issue_auth_tokens(db, profile, ip_address, user_agent)
    await db.commit()
    await db.refresh(profile)
    cache.invalidate(profile.id)

    logger.info(f"User logged in: {profile.id} (role: {profile.role.value})")
    return result


async def _register_failed_login(db: AsyncSession, profile: Profile, now: datetime) -> None:
    # A lock that has already run out starts a fresh count
    if profile.locked_until is not None and profile.locked_until <= now:
        attempts = 1
        locked_until = None
    else:
        attempts = (profile.failed_login_attempts or 0) + 1
        locked_until = profile.locked_until

    if attempts >= MAX_FAILED_LOGINS and locked_until is None:
        locked_until = now + LOCKOUT_DURATION
        logger.warning(f"Locking account {profile.id} after {attempts} failed logins")

    await UserRepository.update_profile(
        db, profile, failed_login_attempts=attempts, locked_until=locked_until
    )


async def refresh_tokens(
    db: AsyncSession,
    refresh_token: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuthResult:
    """
    Rotate a refresh token: the old session is revoked and a new pair issued.

    Raises:
        InvalidTokenTypeError: An access token was sent
        InvalidRefreshTokenError: Invalid, expired or revoked refresh token
        AccountInactiveError: Account deactivated since sign-in
    """
    payload = decode_token(refresh_token, TOKEN_TYPE_REFRESH)
    if payload is None:
        if decode_token(refresh_token, TOKEN_TYPE_ACCESS) is not None:
            raise InvalidTokenTypeError()
        raise InvalidRefreshTokenError()

    session = await SessionRepository.get_active_by_hash(db, hash_token(refresh_token))
    if session is None or str(session.user_id) != payload.get("sub"):
        logger.warning("Refresh attempted with a revoked or unknown session")
        raise InvalidRefreshTokenError()

    profile = await UserRepository.get_profile(db, session.user_id)
    if profile is None:
        raise InvalidRefreshTokenError()
    if not profile.is_active:
        raise AccountInactiveError()

    await SessionRepository.deactivate(db, [session.id])
    result = await issue_auth_tokens(db, profile, ip_address, user_agent)
    await log_security_event(
        db, profile.id, SecurityEventType.TOKEN_REFRESHED, {}, ip_address, user_agent
    )
    await db.commit()
    return result


async def logout(
    db: AsyncSession,
    user_id: UUID,
    refresh_token: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Revoke the session for `refresh_token`, or every session when omitted."""
    if refresh_token:
        session = await SessionRepository.get_active_by_hash(db, hash_token(refresh_token))
        if session is not None and session.user_id == user_id:
            await SessionRepository.deactivate(db, [session.id])
    else:
        await SessionRepository.deactivate_all_for_user(db, user_id)

    await log_security_event(
        db,
        user_id,
        SecurityEventType.LOGOUT,
        {"all_sessions": refresh_token is None},
        ip_address,
        user_agent,
    )
    await db.commit()
    logger.info(f"User {user_id} logged out")


async def change_password(
    db: AsyncSession,
    cache: TTLCache,
    user_id: UUID,
    data: ChangePasswordRequest,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Change the password and sign out everywhere.

    Raises:
        InvalidCredentialsError: Current password is wrong
    """
    user = await UserRepository.get_user_by_id(db, user_id)
    if user is None:
        raise ProfileNotFoundError(user_id)

    if not verify_password(data.current_password, user.password_hash):
        await _record_login_event(
            db, user_id, SecurityEventType.PASSWORD_CHANGE_FAILED, {}, ip_address, user_agent
        )
        raise InvalidCredentialsError("Current password is incorrect.")

    if data.current_password == data.new_password:
        raise ValidationError("New password must differ from the current password")

    await UserRepository.set_password_hash(db, user_id, hash_password(data.new_password))
    await SessionRepository.deactivate_all_for_user(db, user_id)
    await log_security_event(
        db, user_id, SecurityEventType.PASSWORD_CHANGED, {}, ip_address, user_agent
    )
    await db.commit()
    cache.invalidate(user_id)
    logger.info(f"Password changed for user {user_id}")


async def forgot_password(
    db: AsyncSession,
    email: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Email a reset link if an active account uses `email`.

    The caller answers identically either way, so the response does not
    reveal whether the account exists.

    Raises:
        RateLimitExceededError: More than 3 requests for the email per hour
    """
    email = email.strip().lower()
    await enforce_rate_limit(db, email, FORGOT_PASSWORD_POLICY)

    issued = await create_password_reset_token(db, email, ip_address, user_agent)
    if issued is None:
        return

    token, profile = issued
    await db.commit()
    await send_password_reset(profile.email, profile.full_name, token)


async def reset_password(
    db: AsyncSession,
    cache: TTLCache,
    data: ResetPasswordRequest,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Set a new password from a reset link. The link is single-use.

    Raises:
        TokenRejectedError: Unknown, expired or already used token
    """
    result, _ = await redeem_url_token(
        db, data.token, TokenType.RESET, ip_address, user_agent
    )
    if not result.valid or result.user_id is None:
        raise TokenRejectedError(result)

    user_id = result.user_id
    await UserRepository.set_password_hash(db, user_id, hash_password(data.new_password))
    await SessionRepository.deactivate_all_for_user(db, user_id)

    profile = await UserRepository.get_profile(db, user_id)
    if profile is not None:
        await UserRepository.update_profile(
            db, profile, failed_login_attempts=0, locked_until=None
        )

    await log_security_event(
        db, user_id, SecurityEventType.PASSWORD_RESET, {}, ip_address, user_agent
    )
    await db.commit()
    cache.invalidate(user_id)
    logger.info(f"Password reset for user {user_id}")


async def verify_email(
    db: AsyncSession,
    cache: TTLCache,
    token: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Mark the email verified from a verification link. The link is single-use.

    Raises:
        TokenRejectedError: Unknown, expired or already used token
    """
    result, _ = await redeem_url_token(
        db, token, TokenType.VERIFICATION, ip_address, user_agent
    )
    if not result.valid or result.user_id is None:
        raise TokenRejectedError(result)

    profile = await UserRepository.get_profile(db, result.user_id)
    if profile is None:
        raise ProfileNotFoundError(result.user_id)

    await UserRepository.update_profile(db, profile, email_verified=True)
    await log_security_event(
        db, profile.id, SecurityEventType.EMAIL_VERIFIED, {}, ip_address, user_agent
    )
    await db.commit()
    cache.invalidate(profile.id)
    logger.info(f"Email verified for user {profile.id}")


async def send_verification(db: AsyncSession, user_id: UUID) -> bool:
    """
    Email a fresh verification link.

    Returns:
        False if the email is already verified, otherwise True
    """
    profile = await UserRepository.get_profile(db, user_id)
    if profile is None:
        raise ProfileNotFoundError(user_id)
    if profile.email_verified:
        return False

    token = await create_email_verification_token(db, user_id)
    await db.commit()
    await send_email_verification(profile.email, profile.full_name, token)
    return True
