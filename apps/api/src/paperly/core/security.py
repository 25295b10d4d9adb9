"""
Security Utilities

Password hashing (bcrypt), JWT creation/validation (python-jose) and
helpers for opaque bearer tokens.

Access and refresh tokens are signed with separate secrets so a leaked
refresh secret cannot mint access tokens and vice versa.
"""

import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from paperly.core.config import settings

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
BCRYPT_MAX_PASSWORD_BYTES = 72

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


def _password_bytes(password: str) -> bytes:
    # bcrypt ignores everything past 72 bytes; newer releases raise instead
    return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt and return the hash as a string."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def _create_token(
    subject: str,
    token_type: str,
    secret: str,
    expires_delta: timedelta,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
        # Unique id so two tokens issued in the same second still differ
        "jti": secrets.token_hex(8),
    }
    if additional_claims:
        payload.update(additional_claims)
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    subject: str,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a short-lived access token.

    Args:
        subject: User id placed in the `sub` claim
        additional_claims: Extra claims (email, role, name)
        expires_delta: Override for the configured lifetime

    Returns:
        Encoded JWT string
    """
    return _create_token(
        subject,
        TOKEN_TYPE_ACCESS,
        settings.jwt_access_secret,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
        additional_claims,
    )


def create_refresh_token(subject: str, expires_delta: timedelta | None = None) -> str:
    """Create a long-lived refresh token for the given user id."""
    return _create_token(
        subject,
        TOKEN_TYPE_REFRESH,
        settings.jwt_refresh_secret,
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def decode_token(token: str, token_type: str = TOKEN_TYPE_ACCESS) -> dict[str, Any] | None:
    """
    Decode and validate a JWT.

    Verifies the signature against the secret for `token_type`, the
    expiry, and that the `type` claim matches.

    Returns:
        The payload dict, or None if the token is invalid or expired
    """
    secret = (
        settings.jwt_refresh_secret
        if token_type == TOKEN_TYPE_REFRESH
        else settings.jwt_access_secret
    )
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug(f"JWT decode failed: {e}")
        return None

    if payload.get("type") != token_type:
        return None
    return payload


def generate_url_token() -> str:
    """Generate a 64-character hex token (32 random bytes) for URL links."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token, used to store refresh tokens at rest."""
    return hashlib.sha256(token.encode()).hexdigest()
