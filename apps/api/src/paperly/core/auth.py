"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
Access tokens are validated with the helpers in security.py and turned
into a CurrentUser; role checks are layered on top.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from paperly.core.security import TOKEN_TYPE_ACCESS, decode_token
from paperly.modules.users.models import UserRole

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)


@dataclass
class CurrentUser:
    """
    An authenticated user, populated from access-token claims.

    Attributes:
        id: Profile id (UUID)
        email: Email address
        role: admin or teacher
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: UserRole
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, email={self.email}, role={self.role.value})"


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def authenticate_token(token: str) -> CurrentUser:
    """
    Validate an access token and extract the user.

    Args:
        token: JWT from the Authorization header or a WebSocket query string

    Returns:
        CurrentUser built from the token claims

    Raises:
        HTTPException 401: If the token is invalid, expired, or not an access token
    """
    payload = decode_token(token, TOKEN_TYPE_ACCESS)

    if payload is None:
        logger.warning("Invalid or expired access token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")

        return CurrentUser(
            id=UUID(user_id_str),
            email=payload.get("email", ""),
            role=UserRole(payload.get("role", "")),
            name=payload.get("name"),
        )
    except (ValueError, KeyError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """FastAPI dependency returning the authenticated user."""
    return authenticate_token(credentials.credentials)


async def get_current_admin_user(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """
    FastAPI dependency requiring the admin role.

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
        HTTPException 403: If the user is not an admin
    """
    if not user.is_admin:
        logger.warning(
            f"Access denied: user {user.id} has role '{user.role.value}', admin required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ADMIN_ACCESS_REQUIRED",
                "message": "Admin access is required for this endpoint.",
            },
        )

    return user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(HTTPBearer(auto_error=False)),
) -> CurrentUser | None:
    """Return the user when a valid token is sent, otherwise None."""
    if not credentials:
        return None

    try:
        return authenticate_token(credentials.credentials)
    except HTTPException:
        return None


__all__ = [
    "CurrentUser",
    "authenticate_token",
    "get_current_user",
    "get_current_admin_user",
    "get_optional_user",
]
