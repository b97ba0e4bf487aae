from .device import Device, Platform, Session, TenantMembership, UserAccount
from .rate_limit import RateLimitDecision, RateLimitEntry
from .sync import (
    EPOCH,
    ChangeAction,
    ConflictRecord,
    PendingChange,
    Resolution,
    ServerChange,
    StoredRecord,
    SyncKey,
    SyncResult,
    SyncState,
)
from .token import IdentityContext, TokenKind, TokenPair, TokenPayload

__all__ = [
    "ChangeAction",
    "ConflictRecord",
    "Device",
    "EPOCH",
    "IdentityContext",
    "PendingChange",
    "Platform",
    "RateLimitDecision",
    "RateLimitEntry",
    "Resolution",
    "ServerChange",
    "Session",
    "StoredRecord",
    "SyncKey",
    "SyncResult",
    "SyncState",
    "TenantMembership",
    "TokenKind",
    "TokenPair",
    "TokenPayload",
    "UserAccount",
]
