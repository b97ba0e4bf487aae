# bizflow/mobile/container.py
# Wires the mobile ports to their adapters. One container per app instance,
# held on app.state so tests can build isolated apps side by side.
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from bizflow.config import Settings
from bizflow.mobile.application.services import (
    DeviceService,
    MobileAuthService,
    RateLimiter,
    SyncManager,
)
from bizflow.mobile.domain.repositories import (
    EntityStore,
    NotificationService,
    RateLimitStore,
    SessionRegistry,
    SyncStateRepository,
    UserDirectory,
)
from bizflow.mobile.infrastructure.adapters import JWTService
from bizflow.mobile.infrastructure.rate_limit import InMemoryRateLimitStore, RedisRateLimitStore
from bizflow.mobile.infrastructure.repositories import (
    InMemoryEntityStore,
    InMemoryNotificationService,
    InMemorySessionRegistry,
    InMemorySyncStateRepository,
    InMemoryUserDirectory,
)
from bizflow.mobile.infrastructure.repositories.demo_seed import seed_demo_users
from bizflow.mobile.infrastructure.workers.rate_limit_sweeper import RateLimitSweeper
from bizflow.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MobileContainer:
    settings: Settings
    jwt: JWTService
    users: UserDirectory
    sessions: SessionRegistry
    records: EntityStore
    sync_states: SyncStateRepository
    notifications: NotificationService
    rate_limit_store: RateLimitStore
    rate_limiter: RateLimiter
    sweeper: RateLimitSweeper
    auth: MobileAuthService = field(init=False)
    devices: DeviceService = field(init=False)
    sync: SyncManager = field(init=False)

    def __post_init__(self) -> None:
        self.auth = MobileAuthService(
            jwt_service=self.jwt,
            users=self.users,
            sessions=self.sessions,
            check_device_revocation=self.settings.AUTH_CHECK_DEVICE_REVOCATION,
        )
        self.devices = DeviceService(sessions=self.sessions, notifications=self.notifications)
        self.sync = SyncManager(
            records=self.records,
            states=self.sync_states,
            page_size=self.settings.SYNC_PAGE_SIZE,
            max_batch_size=self.settings.SYNC_MAX_BATCH_SIZE,
        )

    async def close(self) -> None:
        await self.sweeper.stop()
        if isinstance(self.rate_limit_store, RedisRateLimitStore):
            await self.rate_limit_store.close()


def _build_rate_limit_store(settings: Settings) -> RateLimitStore:
    if settings.RATE_LIMIT_BACKEND == "redis":
        if not settings.REDIS_URL:
            raise ValueError("RATE_LIMIT_BACKEND=redis requires REDIS_URL")
        logger.info("rate_limit_backend", backend="redis")
        return RedisRateLimitStore.from_url(settings.REDIS_URL)
    return InMemoryRateLimitStore()


def build_container(
    settings: Settings,
    *,
    rate_limit_store: Optional[RateLimitStore] = None,
    clock: Callable[[], float] = time.time,
) -> MobileContainer:
    users = InMemoryUserDirectory()
    if settings.SEED_DEMO_DATA:
        seed_demo_users(users)

    store = rate_limit_store or _build_rate_limit_store(settings)
    return MobileContainer(
        settings=settings,
        jwt=JWTService.from_settings(settings),
        users=users,
        sessions=InMemorySessionRegistry(),
        records=InMemoryEntityStore(),
        sync_states=InMemorySyncStateRepository(),
        notifications=InMemoryNotificationService(),
        rate_limit_store=store,
        rate_limiter=RateLimiter(
            store,
            settings.RATE_LIMITS,
            clock=clock,
            enabled=settings.ENABLE_RATE_LIMITING,
        ),
        sweeper=RateLimitSweeper(
            store,
            interval=settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
            grace_seconds=settings.RATE_LIMIT_GRACE_SECONDS,
            clock=clock,
        ),
    )
