from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class Platform(str, Enum):
    IOS = "ios"
    ANDROID = "android"


@dataclass(slots=True)
class Device:
    device_id: str
    user_id: str
    tenant_id: str
    platform: Platform
    device_name: str
    app_version: str
    created_at: datetime
    last_active_at: datetime
    os_version: Optional[str] = None
    push_token: Optional[str] = None
    is_revoked: bool = False


@dataclass(slots=True)
class Session:
    """Revocation bookkeeping for one (user, device); tokens themselves stay stateless."""
    user_id: str
    device_id: str
    tenant_id: str
    created_at: datetime
    refreshed_at: Optional[datetime] = None
    is_revoked: bool = False


@dataclass(frozen=True, slots=True)
class TenantMembership:
    tenant_id: str
    name: str
    role: str


@dataclass(frozen=True, slots=True)
class UserAccount:
    id: str
    email: str
    role: str
    password_hash: str
    permissions: Tuple[str, ...] = ()
    memberships: Tuple[TenantMembership, ...] = field(default_factory=tuple)
    is_active: bool = True

    def membership(self, tenant_id: str) -> Optional[TenantMembership]:
        return next((m for m in self.memberships if m.tenant_id == tenant_id), None)
