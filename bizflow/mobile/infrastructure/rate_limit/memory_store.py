from __future__ import annotations

import threading
from typing import Dict, Optional

from bizflow.mobile.domain.entities import RateLimitEntry
from bizflow.mobile.domain.repositories import RateLimitStore


class InMemoryRateLimitStore(RateLimitStore):
    """
    Process-local fixed-window counters.

    Open-or-increment happens under a threading.Lock so a check and its
    increment can never interleave with another request on the same key.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    async def hit(self, key: str, *, window_seconds: int, now: float) -> RateLimitEntry:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now):
                entry = RateLimitEntry(count=0, reset_at=now + window_seconds)
                self._entries[key] = entry
            entry.count += 1
            return RateLimitEntry(count=entry.count, reset_at=entry.reset_at)

    async def sweep(self, *, now: float, grace_seconds: float = 0.0) -> int:
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now, grace_seconds)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def peek(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)
