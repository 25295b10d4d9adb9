"""
Rate Limiter Service

A per-identifier, per-action attempt counter with a fixed window and a
blocked-until timestamp, stored in the `rate_limits` table.

Semantics (max N attempts per window W):
- First attempt creates the record with count 1.
- Attempts 2..N inside the window increment the count.
- Attempt N+1 inside the window sets blocked_until to the window end and
  is rejected, as is every attempt until then.
- The first attempt at or after window_start + W resets the record to
  count 1 with a fresh window and is allowed.

The decision itself is `apply_attempt`, a pure function of the record,
the current time and the limits. `check_rate_limit` wraps it with the
database read/write and commits, so an attempt is counted even when the
operation it guards fails afterwards.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.exceptions import ServiceError
from paperly.modules.rate_limits import repository
from paperly.modules.rate_limits.models import RateLimit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Limits for one action."""

    action: str
    max_attempts: int
    window: timedelta


LOGIN_POLICY = RateLimitPolicy("login", 5, timedelta(minutes=15))
REGISTER_POLICY = RateLimitPolicy("register", 3, timedelta(minutes=15))
URL_VALIDATION_POLICY = RateLimitPolicy("url_validation", 10, timedelta(minutes=1))
FORGOT_PASSWORD_POLICY = RateLimitPolicy("forgot_password", 3, timedelta(hours=1))


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one attempt."""

    allowed: bool
    count: int
    retry_after_seconds: int = 0


class RateLimitExceededError(ServiceError):
    """Raised when an identifier is blocked for an action."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        minutes = max(1, -(-retry_after_seconds // 60))
        super().__init__(
            message=f"Too many attempts. Please try again in {minutes} minute(s).",
            error_code="RATE_LIMITED",
            status_code=429,
        )


def _seconds_until(moment: datetime, now: datetime) -> int:
    return max(1, int((moment - now).total_seconds()))


def apply_attempt(
    record: RateLimit,
    now: datetime,
    max_attempts: int,
    window: timedelta,
) -> RateLimitDecision:
    """
    Count one attempt against an existing record, mutating it in place.

    Args:
        record: The stored counter for this identifier/action
        now: Current time (timezone-aware)
        max_attempts: Attempts allowed per window
        window: Window length

    Returns:
        RateLimitDecision for this attempt
    """
    window_end = record.window_start + window

    if now >= window_end:
        record.count = 1
        record.window_start = now
        record.blocked_until = None
        return RateLimitDecision(allowed=True, count=1)

    if record.blocked_until is not None and now < record.blocked_until:
        return RateLimitDecision(
            allowed=False,
            count=record.count,
            retry_after_seconds=_seconds_until(record.blocked_until, now),
        )

    if record.count >= max_attempts:
        record.blocked_until = window_end
        return RateLimitDecision(
            allowed=False,
            count=record.count,
            retry_after_seconds=_seconds_until(window_end, now),
        )

    record.count += 1
    return RateLimitDecision(allowed=True, count=record.count)


async def check_rate_limit(
    db: AsyncSession,
    identifier: str,
    action: str,
    max_attempts: int,
    window: timedelta,
    now: datetime | None = None,
) -> RateLimitDecision:
    """
    Record an attempt and decide whether it is allowed.

    Commits the session.

    Args:
        db: Database session
        identifier: Email or IP address
        action: Action name (login, url_validation, ...)
        max_attempts: Attempts allowed per window
        window: Window length
        now: Override for the current time

    Returns:
        RateLimitDecision
    """
    now = now or datetime.now(UTC)
    identifier = identifier.strip().lower()

    record = await repository.get_for_update(db, identifier, action)
    if record is None and await repository.insert_if_absent(
        db, identifier, action, window_start=now
    ):
        decision = RateLimitDecision(allowed=True, count=1)
    else:
        if record is None:
            # A concurrent first attempt inserted the row; count against it
            record = await repository.get_for_update(db, identifier, action)
        decision = apply_attempt(record, now, max_attempts, window)

    await db.commit()

    if not decision.allowed:
        logger.warning(
            f"Rate limit hit for action '{action}' ({max_attempts}/{int(window.total_seconds())}s)"
        )
    return decision


async def enforce_rate_limit(
    db: AsyncSession,
    identifier: str,
    policy: RateLimitPolicy,
    now: datetime | None = None,
) -> RateLimitDecision:
    """
    Like `check_rate_limit` but raises when the attempt is rejected.

    Raises:
        RateLimitExceededError: If the identifier is blocked
    """
    decision = await check_rate_limit(
        db, identifier, policy.action, policy.max_attempts, policy.window, now=now
    )
    if not decision.allowed:
        raise RateLimitExceededError(decision.retry_after_seconds)
    return decision
