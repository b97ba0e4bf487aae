# bizflow/mobile/api/schemas.py
# Wire models. Fields are camelCase on the wire; snake_case is accepted too.
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from bizflow.mobile.application.dtos import (
    BatchItemError,
    LoginCommand,
    LoginResult,
    PushRegistration,
    SyncCommand,
    TenantSwitchResult,
)
from bizflow.mobile.domain.entities import (
    ChangeAction,
    ConflictRecord,
    Device,
    PendingChange,
    Platform,
    Resolution,
    ServerChange,
    SyncResult,
    TenantMembership,
    TokenPair,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ===== Auth =====

class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    device_id: str = Field(..., min_length=1, max_length=128)
    device_name: str = Field(..., min_length=1, max_length=200)
    platform: Platform
    app_version: str = Field(..., min_length=1, max_length=32)
    os_version: Optional[str] = Field(default=None, max_length=32)

    def to_command(self) -> LoginCommand:
        return LoginCommand(
            email=str(self.email),
            password=self.password,
            device_id=self.device_id,
            device_name=self.device_name,
            platform=self.platform,
            app_version=self.app_version,
            os_version=self.os_version,
        )


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class SwitchTenantRequest(CamelModel):
    tenant_id: str = Field(..., min_length=1)


class TokenPairOut(CamelModel):
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    expires_in_seconds: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairOut":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            access_expires_at=pair.access_expires_at,
            refresh_expires_at=pair.refresh_expires_at,
            expires_in_seconds=pair.expires_in_seconds,
        )


class TenantOut(CamelModel):
    id: str
    name: str
    role: str

    @classmethod
    def from_membership(cls, m: TenantMembership) -> "TenantOut":
        return cls(id=m.tenant_id, name=m.name, role=m.role)


class UserOut(CamelModel):
    id: str
    email: str
    role: str


class LoginResponse(CamelModel):
    user: UserOut
    tenants: List[TenantOut]
    current_tenant: TenantOut
    tokens: TokenPairOut

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(
            user=UserOut(id=result.user.id, email=result.user.email, role=result.user.role),
            tenants=[TenantOut.from_membership(m) for m in result.tenants],
            current_tenant=TenantOut.from_membership(result.current_tenant),
            tokens=TokenPairOut.from_pair(result.tokens),
        )


class RefreshResponse(CamelModel):
    tokens: TokenPairOut


class SwitchTenantResponse(CamelModel):
    tenant: TenantOut
    tokens: TokenPairOut

    @classmethod
    def from_result(cls, result: TenantSwitchResult) -> "SwitchTenantResponse":
        return cls(tenant=TenantOut.from_membership(result.tenant), tokens=TokenPairOut.from_pair(result.tokens))


class SuccessResponse(CamelModel):
    success: bool = True


# ===== Devices / push =====

class DeviceOut(CamelModel):
    device_id: str
    device_name: str
    platform: Platform
    app_version: str
    os_version: Optional[str] = None
    last_active_at: datetime
    created_at: datetime
    is_revoked: bool
    is_current: bool = False

    @classmethod
    def from_device(cls, device: Device, *, current_device_id: str) -> "DeviceOut":
        return cls(
            device_id=device.device_id,
            device_name=device.device_name,
            platform=device.platform,
            app_version=device.app_version,
            os_version=device.os_version,
            last_active_at=device.last_active_at,
            created_at=device.created_at,
            is_revoked=device.is_revoked,
            is_current=device.device_id == current_device_id,
        )


class DeviceListResponse(CamelModel):
    devices: List[DeviceOut]


class PushDeviceRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=4096)
    platform: Platform
    device_id: str = Field(..., min_length=1, max_length=128)
    device_name: str = Field(..., min_length=1, max_length=200)

    def to_registration(self) -> PushRegistration:
        return PushRegistration(
            token=self.token,
            platform=self.platform,
            device_id=self.device_id,
            device_name=self.device_name,
        )


# ===== Sync =====

class PendingChangeIn(CamelModel):
    id: str = Field(..., min_length=1)
    action: ChangeAction
    data: Optional[Dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("data", "payload"))
    timestamp: int = Field(..., ge=0, description="Client modification time (epoch ms)")

    def to_domain(self) -> PendingChange:
        return PendingChange(id=self.id, action=self.action, client_timestamp_ms=self.timestamp, data=self.data)

    @classmethod
    def from_domain(cls, change: PendingChange) -> "PendingChangeIn":
        return cls(id=change.id, action=change.action, data=change.data, timestamp=change.client_timestamp_ms)


class SyncRequest(CamelModel):
    entity: str = Field(..., min_length=1, max_length=64)
    last_synced_at: Optional[datetime] = None
    client_version: int = Field(default=0, ge=0)
    pending_changes: List[PendingChangeIn] = Field(default_factory=list)
    cursor: Optional[str] = None

    def to_command(self) -> SyncCommand:
        return SyncCommand(
            entity=self.entity,
            last_synced_at=self.last_synced_at,
            client_version=self.client_version,
            pending_changes=[c.to_domain() for c in self.pending_changes],
            cursor=self.cursor,
        )


class ServerChangeOut(CamelModel):
    id: str
    action: ChangeAction
    data: Optional[Dict[str, Any]] = None
    timestamp: int

    @classmethod
    def from_domain(cls, change: ServerChange) -> "ServerChangeOut":
        return cls(id=change.id, action=change.action, data=change.data, timestamp=change.server_timestamp_ms)


class ConflictOut(CamelModel):
    client_change: PendingChangeIn
    server_data: Optional[Dict[str, Any]] = None
    resolution: Resolution

    @classmethod
    def from_domain(cls, conflict: ConflictRecord) -> "ConflictOut":
        return cls(
            client_change=PendingChangeIn.from_domain(conflict.client_change),
            server_data=conflict.server_data,
            resolution=conflict.resolution,
        )


class SyncResponse(CamelModel):
    entity: str
    server_version: int
    synced_at: datetime
    changes: List[ServerChangeOut]
    conflicts: List[ConflictOut]
    processed: List[str]
    failed: List[str]
    has_more: bool
    next_cursor: Optional[str] = None
    checksum: str

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResponse":
        return cls(
            entity=result.entity,
            server_version=result.server_version,
            synced_at=result.synced_at,
            changes=[ServerChangeOut.from_domain(c) for c in result.changes],
            conflicts=[ConflictOut.from_domain(c) for c in result.conflicts],
            processed=list(result.processed),
            failed=list(result.failed),
            has_more=result.has_more,
            next_cursor=result.next_cursor,
            checksum=result.checksum,
        )


class SyncErrorItem(CamelModel):
    entity: str
    error: str
    message: str
    retryable: bool
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def from_domain(cls, item: BatchItemError) -> "SyncErrorItem":
        return cls(
            entity=item.entity,
            error=item.error,
            message=item.message,
            retryable=item.retryable,
            details=item.details,
        )


class SyncBatchRequest(CamelModel):
    entities: List[SyncRequest] = Field(..., min_length=1, max_length=20)


class SyncBatchResponse(CamelModel):
    results: List[Union[SyncResponse, SyncErrorItem]]


# ===== System =====

class HealthResponse(CamelModel):
    status: str
    version: str
    timestamp: datetime


class ApiVersionInfo(CamelModel):
    current: str
    minimum: str
    supported: List[str]


class FeatureFlags(CamelModel):
    offline_sync: bool
    push_notifications: bool
    biometric_auth: bool


class ClientLimits(CamelModel):
    max_sync_batch_size: int
    max_upload_size: int
    sync_interval_seconds: int
    sync_page_size: int


class ClientConfigResponse(CamelModel):
    api_version: ApiVersionInfo
    features: FeatureFlags
    limits: ClientLimits
