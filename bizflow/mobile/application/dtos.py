from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from bizflow.mobile.domain.entities import (
    PendingChange,
    Platform,
    TenantMembership,
    TokenPair,
    UserAccount,
)


@dataclass(frozen=True)
class LoginCommand:
    email: str
    password: str
    device_id: str
    device_name: str
    platform: Platform
    app_version: str
    os_version: Optional[str] = None


@dataclass(frozen=True)
class LoginResult:
    user: UserAccount
    tenants: List[TenantMembership]
    current_tenant: TenantMembership
    tokens: TokenPair


@dataclass(frozen=True)
class TenantSwitchResult:
    tenant: TenantMembership
    tokens: TokenPair


@dataclass(frozen=True)
class PushRegistration:
    token: str
    platform: Platform
    device_id: str
    device_name: str


@dataclass
class BatchItemError:
    entity: str
    error: str
    message: str
    retryable: bool
    details: Optional[dict] = field(default=None)


@dataclass(frozen=True)
class SyncCommand:
    entity: str
    last_synced_at: Optional[datetime] = None
    client_version: int = 0
    pending_changes: List[PendingChange] = field(default_factory=list)
    cursor: Optional[str] = None
