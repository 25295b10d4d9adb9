"""
Users module - identities, profiles, sessions and the security audit log.
"""

from paperly.modules.users.models import (
    Profile,
    SecurityEvent,
    SecurityEventType,
    User,
    UserRole,
    UserSession,
)
from paperly.modules.users.repository import (
    SecurityEventRepository,
    SessionRepository,
    UserRepository,
)

__all__ = [
    "User",
    "Profile",
    "UserRole",
    "UserSession",
    "SecurityEvent",
    "SecurityEventType",
    "UserRepository",
    "SessionRepository",
    "SecurityEventRepository",
]
