"""
Rate limits module - database-backed attempt counters.
"""

from paperly.modules.rate_limits.models import RateLimit
from paperly.modules.rate_limits.service import (
    FORGOT_PASSWORD_POLICY,
    LOGIN_POLICY,
    REGISTER_POLICY,
    URL_VALIDATION_POLICY,
    RateLimitDecision,
    RateLimitExceededError,
    RateLimitPolicy,
    check_rate_limit,
    enforce_rate_limit,
)

__all__ = [
    "RateLimit",
    "RateLimitDecision",
    "RateLimitExceededError",
    "RateLimitPolicy",
    "LOGIN_POLICY",
    "REGISTER_POLICY",
    "URL_VALIDATION_POLICY",
    "FORGOT_PASSWORD_POLICY",
    "check_rate_limit",
    "enforce_rate_limit",
]
