"""
Authentication Router

Endpoints:
- POST /auth/register - Create an account (rate limited by IP)
- POST /auth/login - Sign in (rate limited by email)
- POST /auth/refresh - Rotate a refresh token
- POST /auth/logout - Revoke a session
- GET /auth/profile - Current user's profile (cached)
- PUT /auth/profile - Update the current user's profile
- PUT /auth/change-password - Change password and revoke all sessions
- GET /auth/security-events - Recent audit events for the current user
- POST /auth/forgot-password - Email a reset link
- POST /auth/reset-password - Set a new password from a reset link
- POST /auth/verify-email - Confirm an email address
- POST /auth/send-verification - Email a new verification link
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.auth import CurrentUser, get_current_user
from paperly.core.cache import TTLCache, get_profile_cache
from paperly.core.database import get_db
from paperly.core.exceptions import ServiceError, raise_internal_error, raise_service_error
from paperly.core.rate_limit import client_ip, client_user_agent, ip_rate_limit
from paperly.modules.auth import service
from paperly.modules.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    VerifyEmailRequest,
)
from paperly.modules.rate_limits.service import REGISTER_POLICY
from paperly.modules.users import service as user_service
from paperly.modules.users.schemas import (
    ProfileResponse,
    ProfileUpdate,
    SecurityEventListResponse,
    SecurityEventResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_response(result: service.AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        user=ProfileResponse.model_validate(result.profile),
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(ip_rate_limit(REGISTER_POLICY))],
    summary="Register",
)
async def register(
    data: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """
    Create an account and return tokens.

    Raises:
        HTTPException 409: Email already registered
        HTTPException 429: Too many registrations from this IP
    """
    try:
        result = await service.register(db, data, client_ip(request), client_user_agent(request))
        return _auth_response(result)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "registering user")


@router.post("/login", response_model=AuthResponse, summary="Login")
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_profile_cache),
) -> AuthResponse:
    """
    Authenticate user and return JWT tokens.

    Raises:
        HTTPException 401: Invalid credentials, locked or inactive account
        HTTPException 429: Too many attempts for this email
    """
    try:
        result = await service.login(
            db, cache, credentials, client_ip(request), client_user_agent(request)
        )
        return _auth_response(result)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "logging in")


@router.post("/refresh", response_model=TokenResponse, summary="Refresh Tokens")
async def refresh(
    data: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    try:
        result = await service.refresh_tokens(
            db, data.refresh_token, client_ip(request), client_user_agent(request)
        )
        return TokenResponse(access_token=result.access_token, refresh_token=result.refresh_token)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "refreshing tokens")


@router.post("/logout", response_model=MessageResponse, summary="Logout")
async def logout(
    request: Request,
    data: LogoutRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    """Revoke the given refresh token's session, or all sessions if none is sent."""
    try:
        await service.logout(
            db,
            user.id,
            data.refresh_token if data else None,
            client_ip(request),
            client_user_agent(request),
        )
        return MessageResponse(message="Logged out successfully")
    except Exception as e:
        raise_internal_error(e, "logging out")


@router.get("/profile", response_model=ProfileResponse, summary="Get Profile")
async def get_profile(
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_profile_cache),
    user: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    try:
        profile = await user_service.get_profile_fast(db, cache, user.id)
        if profile is None:
            raise user_service.ProfileNotFoundError(user.id)
        return profile
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, f"getting profile {user.id}")


@router.put("/profile", response_model=ProfileResponse, summary="Update Profile")
async def update_profile(
    data: ProfileUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_profile_cache),
    user: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    try:
        return await user_service.update_profile(
            db, cache, user.id, data, client_ip(request), client_user_agent(request)
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, f"updating profile {user.id}")


@router.put("/change-password", response_model=MessageResponse, summary="Change Password")
async def change_password(
    data: ChangePasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_profile_cache),
    user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    """
    Change the password. Every session is revoked, so the client must sign in again.

    Raises:
        HTTPException 401: Current password is incorrect
    """
    try:
        await service.change_password(
            db, cache, user.id, data, client_ip(request), client_user_agent(request)
        )
        return MessageResponse(message="Password changed successfully. Please login again.")
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "changing password")


@router.get("/security-events", response_model=SecurityEventListResponse, summary="Security Events")
async def security_events(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> SecurityEventListResponse:
    events = await user_service.get_security_events(db, user.id)
    return SecurityEventListResponse(
        events=[SecurityEventResponse.model_validate(e) for e in events]
    )


@router.post("/forgot-password", response_model=MessageResponse, summary="Forgot Password")
async def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Always answers the same way, whether or not the account exists."""
    try:
        await service.forgot_password(
            db, data.email, client_ip(request), client_user_agent(request)
        )
        return MessageResponse(
            message="If an account exists for this email, a reset link has been sent."
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "requesting password reset")


@router.post("/reset-password", response_model=MessageResponse, summary="Reset Password")
async def reset_password(
    data: ResetPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_profile_cache),
) -> MessageResponse:
    try:
        await service.reset_password(
            db, cache, data, client_ip(request), client_user_agent(request)
        )
        return MessageResponse(message="Password has been reset. Please login again.")
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "resetting password")


@router.post("/verify-email", response_model=MessageResponse, summary="Verify Email")
async def verify_email(
    data: VerifyEmailRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_profile_cache),
) -> MessageResponse:
    try:
        await service.verify_email(
            db, cache, data.token, client_ip(request), client_user_agent(request)
        )
        return MessageResponse(message="Email verified successfully")
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "verifying email")


@router.post("/send-verification", response_model=MessageResponse, summary="Send Verification")
async def send_verification(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    try:
        sent = await service.send_verification(db, user.id)
        if not sent:
            return MessageResponse(message="Email is already verified")
        return MessageResponse(message="Verification email sent")
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "sending verification email")
