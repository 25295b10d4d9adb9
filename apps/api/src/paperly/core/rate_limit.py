"""
Rate Limiting for HTTP Endpoints

FastAPI-facing side of the database rate limiter in
`paperly.modules.rate_limits`. Provides the 429 exception with a
Retry-After header and a dependency factory that limits by client IP.

Usage:
    @router.post("/register", dependencies=[Depends(ip_rate_limit(REGISTER_POLICY))])
    async def register(...):
        ...
"""

import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.database import get_db
from paperly.modules.rate_limits.service import RateLimitPolicy, check_rate_limit

logger = logging.getLogger(__name__)


class RateLimitExceeded(HTTPException):
    """HTTP 429 raised when a client is blocked."""

    def __init__(self, retry_after_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMITED",
                "message": "Too many attempts. Please try again later.",
                "retry_after_seconds": retry_after_seconds,
            },
            headers={"Retry-After": str(retry_after_seconds)},
        )


def client_ip(request: Request) -> str:
    """Best-effort client IP, honouring X-Forwarded-For from a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def client_user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def ip_rate_limit(policy: RateLimitPolicy) -> Callable[..., Awaitable[None]]:
    """
    Build a dependency that rate-limits the endpoint by client IP.

    Args:
        policy: Action name and limits

    Raises:
        RateLimitExceeded: When the client IP is blocked for the action
    """

    async def dependency(request: Request, db: AsyncSession = Depends(get_db)) -> None:
        ip = client_ip(request)
        decision = await check_rate_limit(
            db, ip, policy.action, policy.max_attempts, policy.window
        )
        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for {ip} on {request.url.path}")
            raise RateLimitExceeded(decision.retry_after_seconds)

    return dependency


__all__ = [
    "RateLimitExceeded",
    "client_ip",
    "client_user_agent",
    "ip_rate_limit",
]
