"""
TTL Cache

A small map-plus-expiry cache. One instance is created per application
(held on `app.state`) and handed to services through `get_profile_cache`,
so it can be invalidated deterministically and tested with a fake clock.
"""

import time
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar

from fastapi import Request

V = TypeVar("V")


class TTLCache(Generic[V]):
    """
    Cache whose entries expire `ttl_seconds` after they were set.

    Args:
        ttl_seconds: Lifetime of each entry
        clock: Returns the current time in seconds (monotonic by default)
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[V, float]] = {}

    def get(self, key: Hashable) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: V) -> None:
        self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, expires_at in self._entries.values() if now < expires_at)


def get_profile_cache(request: Request) -> TTLCache[Any]:
    """FastAPI dependency returning the application's profile cache."""
    return request.app.state.profile_cache
