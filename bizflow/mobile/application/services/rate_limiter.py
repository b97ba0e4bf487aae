from __future__ import annotations

import math
import time
from typing import Callable, Mapping, Optional

from bizflow.config import RateLimitRule
from bizflow.mobile.domain.entities import RateLimitDecision
from bizflow.mobile.domain.repositories import RateLimitStore
from bizflow.shared.exceptions import RateLimitedError
from bizflow.shared.logging import get_logger, log_security_event

logger = get_logger(__name__)

UNKNOWN_DEVICE = "unknown"


class RateLimiter:
    """
    Fixed-window limiter over a pluggable store.

    Each limiter class ("auth", "api", "sync", "upload") has its own budget;
    the class is part of the store key so budgets never bleed into each other.
    """

    def __init__(
        self,
        store: RateLimitStore,
        rules: Mapping[str, RateLimitRule],
        *,
        clock: Callable[[], float] = time.time,
        enabled: bool = True,
    ) -> None:
        self.store = store
        self.rules = dict(rules)
        self.clock = clock
        self.enabled = enabled

    @staticmethod
    def caller_key(client_ip: Optional[str], device_id: Optional[str]) -> str:
        return f"{client_ip or 'unknown'}:{device_id or UNKNOWN_DEVICE}"

    def rule_for(self, limiter_class: str) -> RateLimitRule:
        try:
            return self.rules[limiter_class]
        except KeyError:
            raise ValueError(f"Unknown rate limiter class: {limiter_class}") from None

    async def admit(self, limiter_class: str, caller_key: str) -> RateLimitDecision:
        rule = self.rule_for(limiter_class)
        if not self.enabled:
            return RateLimitDecision(
                allowed=True,
                limit=rule.max_requests,
                remaining=rule.max_requests,
                reset_in_seconds=rule.window_seconds,
            )

        now = self.clock()
        entry = await self.store.hit(
            f"{limiter_class}:{caller_key}", window_seconds=rule.window_seconds, now=now
        )
        return RateLimitDecision(
            allowed=entry.count <= rule.max_requests,
            limit=rule.max_requests,
            remaining=max(0, rule.max_requests - entry.count),
            reset_in_seconds=max(0, math.ceil(entry.reset_at - now)),
        )

    async def enforce(self, limiter_class: str, caller_key: str) -> RateLimitDecision:
        """admit() that raises RateLimitedError (429) when the window is exhausted."""
        decision = await self.admit(limiter_class, caller_key)
        if not decision.allowed:
            log_security_event(
                "rate_limited",
                details={"class": limiter_class, "key": caller_key, "retry_after": decision.reset_in_seconds},
            )
            raise RateLimitedError(
                self.rule_for(limiter_class).message,
                retry_after=decision.reset_in_seconds,
                limit=decision.limit,
                limiter_class=limiter_class,
            )
        return decision
