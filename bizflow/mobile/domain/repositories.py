"""
Ports for the collaborators the mobile layer depends on but does not own.
In-memory adapters live in bizflow.mobile.infrastructure.repositories.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from bizflow.mobile.domain.entities import (
    Device,
    PendingChange,
    RateLimitEntry,
    Session,
    StoredRecord,
    SyncKey,
    SyncState,
    UserAccount,
)


class UserDirectory(ABC):
    @abstractmethod
    async def authenticate(self, email: str, password: str) -> Optional[UserAccount]:
        """Return the active user when the credentials match, else None."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        ...


class SessionRegistry(ABC):
    """Device metadata plus the revocation bookkeeping for issued tokens."""

    @abstractmethod
    async def register_device(self, device: Device) -> Device:
        """Create or refresh a device; re-registering clears a previous revocation."""

    @abstractmethod
    async def get_device(self, user_id: str, device_id: str) -> Optional[Device]:
        ...

    @abstractmethod
    async def list_devices(self, user_id: str) -> List[Device]:
        ...

    @abstractmethod
    async def revoke_device(self, user_id: str, device_id: str) -> bool:
        """Revoke the device and its session. False when the device is unknown."""

    @abstractmethod
    async def open_session(self, session: Session) -> Session:
        ...

    @abstractmethod
    async def get_session(self, user_id: str, device_id: str) -> Optional[Session]:
        ...

    @abstractmethod
    async def mark_refreshed(self, user_id: str, device_id: str, *, tenant_id: str, at: datetime) -> None:
        ...

    @abstractmethod
    async def revoke_session(self, user_id: str, device_id: str) -> None:
        ...

    @abstractmethod
    async def is_revoked(self, user_id: str, device_id: str) -> bool:
        ...


class EntityStore(ABC):
    """
    Authoritative server copy of the synced business records, per tenant.

    Every (tenant, entity) feed carries a server-side high-water mark: write
    stamps are strictly increasing and strictly after any watermark already
    handed to a client, so `changes_since(watermark)` never skips a write.
    """

    @abstractmethod
    async def get(self, tenant_id: str, entity: str, record_id: str) -> Optional[StoredRecord]:
        ...

    @abstractmethod
    async def apply(
        self, tenant_id: str, entity: str, change: PendingChange, *, now_ms: int
    ) -> Optional[StoredRecord]:
        """
        Apply a client change, stamping it at max(now_ms, high-water + 1).
        Idempotent: re-applying the same id/action/data leaves the store
        untouched and returns the existing record.
        """

    @abstractmethod
    async def watermark(self, tenant_id: str, entity: str, *, now_ms: int) -> int:
        """Hand out a feed position no earlier than `now_ms` or any stamp issued so far."""

    @abstractmethod
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
        """
        Records stamped in (since_ms, until_ms], ordered by (server_timestamp_ms, id),
        strictly after `after`.
        """


class SyncStateRepository(ABC):
    @abstractmethod
    async def get(self, key: SyncKey) -> Optional[SyncState]:
        ...

    @abstractmethod
    async def advance(self, key: SyncKey, *, synced_at: datetime, checksum: str) -> SyncState:
        """Persist a new state whose server_version is exactly previous + 1."""


class NotificationService(ABC):
    @abstractmethod
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
        ...

    @abstractmethod
    async def unregister_device(self, *, user_id: str, token: str) -> bool:
        ...


class RateLimitStore(ABC):
    @abstractmethod
    async def hit(self, key: str, *, window_seconds: int, now: float) -> RateLimitEntry:
        """Atomically open-or-increment the window for `key` and return the updated entry."""

    @abstractmethod
    async def sweep(self, *, now: float, grace_seconds: float = 0.0) -> int:
        """Drop expired windows; returns how many were removed."""
