from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class RateLimitEntry:
    """Fixed-window counter for one (limiter class, caller ip, device) key."""
    count: int
    reset_at: float  # epoch seconds

    def is_expired(self, now: float, grace_seconds: float = 0.0) -> bool:
        return now >= self.reset_at + grace_seconds


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_in_seconds: int
