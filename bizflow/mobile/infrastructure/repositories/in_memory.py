"""
In-memory adapters for the mobile ports.

Used by the dev server and the test-suite. Key shapes mirror the durable
stores (tenant:user:entity for sync state). Mutations are guarded by a
threading.Lock so they stay atomic regardless of which event loop a
request runs on.
"""
from __future__ import annotations

import copy
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from bizflow.mobile.domain.entities import (
    ChangeAction,
    Device,
    PendingChange,
    Session,
    StoredRecord,
    SyncKey,
    SyncState,
    UserAccount,
)
from bizflow.mobile.domain.repositories import (
    EntityStore,
    NotificationService,
    SessionRegistry,
    SyncStateRepository,
    UserDirectory,
)
from bizflow.mobile.infrastructure.adapters.password_hasher import PasslibPasswordHasher
from bizflow.shared.logging import get_logger

logger = get_logger(__name__)


# ───────────────────────────── Users ─────────────────────────────

class InMemoryUserDirectory(UserDirectory):
    def __init__(self, hasher: Optional[PasslibPasswordHasher] = None) -> None:
        self._hasher = hasher or PasslibPasswordHasher()
        self._by_id: Dict[str, UserAccount] = {}
        self._by_email: Dict[str, str] = {}

    @property
    def hasher(self) -> PasslibPasswordHasher:
        return self._hasher

    def add(self, user: UserAccount) -> UserAccount:
        self._by_id[user.id] = user
        self._by_email[user.email.lower()] = user.id
        return user

    async def authenticate(self, email: str, password: str) -> Optional[UserAccount]:
        user_id = self._by_email.get(email.lower())
        user = self._by_id.get(user_id) if user_id else None
        if user is None or not user.is_active:
            return None
        if not self._hasher.verify(password, user.password_hash):
            return None
        return user

    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        return self._by_id.get(user_id)


# ───────────────────────── Sessions / devices ─────────────────────────

class InMemorySessionRegistry(SessionRegistry):
    def __init__(self) -> None:
        self._devices: Dict[Tuple[str, str], Device] = {}
        self._sessions: Dict[Tuple[str, str], Session] = {}
        self._lock = threading.Lock()

    async def register_device(self, device: Device) -> Device:
        with self._lock:
            key = (device.user_id, device.device_id)
            existing = self._devices.get(key)
            if existing is not None:
                device.created_at = existing.created_at
                if device.push_token is None:
                    device.push_token = existing.push_token
            device.is_revoked = False
            self._devices[key] = device
            return device

    async def get_device(self, user_id: str, device_id: str) -> Optional[Device]:
        return self._devices.get((user_id, device_id))

    async def list_devices(self, user_id: str) -> List[Device]:
        devices = [d for (uid, _), d in self._devices.items() if uid == user_id]
        return sorted(devices, key=lambda d: d.last_active_at, reverse=True)

    async def revoke_device(self, user_id: str, device_id: str) -> bool:
        with self._lock:
            device = self._devices.get((user_id, device_id))
            if device is None:
                return False
            device.is_revoked = True
            session = self._sessions.get((user_id, device_id))
            if session is not None:
                session.is_revoked = True
            return True

    async def open_session(self, session: Session) -> Session:
        with self._lock:
            self._sessions[(session.user_id, session.device_id)] = session
            return session

    async def get_session(self, user_id: str, device_id: str) -> Optional[Session]:
        return self._sessions.get((user_id, device_id))

    async def mark_refreshed(self, user_id: str, device_id: str, *, tenant_id: str, at: datetime) -> None:
        with self._lock:
            session = self._sessions.get((user_id, device_id))
            if session is not None:
                session.refreshed_at = at
                session.tenant_id = tenant_id
            device = self._devices.get((user_id, device_id))
            if device is not None:
                device.last_active_at = at
                device.tenant_id = tenant_id

    async def revoke_session(self, user_id: str, device_id: str) -> None:
        with self._lock:
            session = self._sessions.get((user_id, device_id))
            if session is not None:
                session.is_revoked = True

    async def is_revoked(self, user_id: str, device_id: str) -> bool:
        session = self._sessions.get((user_id, device_id))
        device = self._devices.get((user_id, device_id))
        return bool((session and session.is_revoked) or (device and device.is_revoked))


# ───────────────────────────── Records ─────────────────────────────

class InMemoryEntityStore(EntityStore):
    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], Dict[str, StoredRecord]] = {}
        # highest feed position issued per (tenant, entity), as a write stamp or a watermark
        self._high_water: Dict[Tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def _bucket(self, tenant_id: str, entity: str) -> Dict[str, StoredRecord]:
        return self._records.setdefault((tenant_id, entity), {})

    def _next_stamp(self, tenant_id: str, entity: str, now_ms: int) -> int:
        stamp = max(now_ms, self._high_water.get((tenant_id, entity), 0) + 1)
        self._high_water[(tenant_id, entity)] = stamp
        return stamp

    async def get(self, tenant_id: str, entity: str, record_id: str) -> Optional[StoredRecord]:
        return self._records.get((tenant_id, entity), {}).get(record_id)

    async def apply(
        self, tenant_id: str, entity: str, change: PendingChange, *, now_ms: int
    ) -> Optional[StoredRecord]:
        with self._lock:
            bucket = self._bucket(tenant_id, entity)
            existing = bucket.get(change.id)
            live = existing is not None and not existing.deleted

            if change.action is ChangeAction.DELETE:
                if not live:
                    return existing
                record = replace(
                    existing,
                    data=None,
                    deleted=True,
                    last_action=ChangeAction.DELETE,
                    modified_at_ms=change.client_timestamp_ms,
                    server_timestamp_ms=self._next_stamp(tenant_id, entity, now_ms),
                )
            else:
                if live and existing.data == change.data:
                    return existing
                record = StoredRecord(
                    id=change.id,
                    data=copy.deepcopy(change.data),
                    modified_at_ms=change.client_timestamp_ms,
                    server_timestamp_ms=self._next_stamp(tenant_id, entity, now_ms),
                    last_action=ChangeAction.UPDATE if live else ChangeAction.CREATE,
                )
            bucket[change.id] = record
            return record

    async def watermark(self, tenant_id: str, entity: str, *, now_ms: int) -> int:
        with self._lock:
            mark = max(now_ms, self._high_water.get((tenant_id, entity), 0))
            self._high_water[(tenant_id, entity)] = mark
            return mark

    async def changes_since(
        self,
        tenant_id: str,
        entity: str,
        *,
        since_ms: int,
        until_ms: int,
        after: Optional[Tuple[int, str]],
        limit: int,
    ) -> List[StoredRecord]:
        with self._lock:
            rows = [
                r
                for r in self._records.get((tenant_id, entity), {}).values()
                if since_ms < r.server_timestamp_ms <= until_ms
            ]
        rows.sort(key=lambda r: (r.server_timestamp_ms, r.id))
        if after is not None:
            rows = [r for r in rows if (r.server_timestamp_ms, r.id) > after]
        return rows[:limit]

    def seed(self, tenant_id: str, entity: str, records: Iterable[StoredRecord]) -> None:
        with self._lock:
            bucket = self._bucket(tenant_id, entity)
            for record in records:
                bucket[record.id] = record
                high_water = self._high_water.get((tenant_id, entity), 0)
                self._high_water[(tenant_id, entity)] = max(high_water, record.server_timestamp_ms)


# ───────────────────────────── Sync state ─────────────────────────────

class InMemorySyncStateRepository(SyncStateRepository):
    def __init__(self) -> None:
        self._states: Dict[str, SyncState] = {}
        self._lock = threading.Lock()

    async def get(self, key: SyncKey) -> Optional[SyncState]:
        return self._states.get(str(key))

    async def advance(self, key: SyncKey, *, synced_at: datetime, checksum: str) -> SyncState:
        with self._lock:
            previous = self._states.get(str(key))
            state = SyncState(
                entity=key.entity,
                last_synced_at=synced_at,
                server_version=(previous.server_version if previous else 0) + 1,
                checksum=checksum,
            )
            self._states[str(key)] = state
            return state


# ───────────────────────────── Push ─────────────────────────────

class InMemoryNotificationService(NotificationService):
    """Keeps push registrations in a dict; delivery is out of scope."""

    def __init__(self) -> None:
        self.registrations: Dict[str, Dict[str, str]] = {}

    async def register_device(
        self,
        *,
        user_id: str,
        tenant_id: str,
        token: str,
        platform: str,
        device_id: str,
        device_name: str,
    ) -> None:
        self.registrations[token] = {
            "user_id": user_id,
            "tenant_id": tenant_id,
            "platform": platform,
            "device_id": device_id,
            "device_name": device_name,
        }
        logger.info("push_device_registered", user_id=user_id, device_id=device_id, platform=platform)

    async def unregister_device(self, *, user_id: str, token: str) -> bool:
        registration = self.registrations.get(token)
        if registration is None or registration["user_id"] != user_id:
            return False
        del self.registrations[token]
        logger.info("push_device_unregistered", user_id=user_id, device_id=registration["device_id"])
        return True
