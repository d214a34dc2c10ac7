"""TTL-bounded cache of per-user admin flags."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class _Entry:
    is_admin: bool
    expires_at: float


class AdminStatusCache:
    """Maps ``user_id -> is_admin`` for ``ttl_seconds``.

    Held on ``app.state``; anything that changes a user's admin flag must
    call :meth:`invalidate`.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[int, _Entry] = {}

    def get(self, user_id: int) -> bool | None:
        """Cached flag, or None when absent or expired."""
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[user_id]
            return None
        return entry.is_admin

    def set(self, user_id: int, is_admin: bool) -> None:
        self._entries[user_id] = _Entry(is_admin, self._clock() + self.ttl_seconds)

    def invalidate(self, user_id: int) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
