from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Resolution(str, Enum):
    CLIENT_WINS = "client_wins"
    SERVER_WINS = "server_wins"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class SyncKey:
    tenant_id: str
    user_id: str
    entity: str

    def __str__(self) -> str:
        return f"{self.tenant_id}:{self.user_id}:{self.entity}"


@dataclass(frozen=True, slots=True)
class SyncState:
    entity: str
    last_synced_at: datetime = EPOCH
    server_version: int = 0
    checksum: str = ""


@dataclass(frozen=True, slots=True)
class PendingChange:
    """Client-submitted mutation; lives for one sync call."""
    id: str
    action: ChangeAction
    client_timestamp_ms: int
    data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True, slots=True)
class StoredRecord:
    """
    Authoritative copy of one business record as seen by the sync layer.
    modified_at_ms is the last-writer timestamp; server_timestamp_ms is when
    the server accepted that write and drives the change feed.
    """
    id: str
    data: Optional[Dict[str, Any]]
    modified_at_ms: int
    server_timestamp_ms: int
    last_action: ChangeAction
    deleted: bool = False


@dataclass(frozen=True, slots=True)
class ServerChange:
    id: str
    action: ChangeAction
    data: Optional[Dict[str, Any]]
    server_timestamp_ms: int

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action.value,
            "data": self.data,
            "timestamp": self.server_timestamp_ms,
        }


@dataclass(frozen=True, slots=True)
class ConflictRecord:
    client_change: PendingChange
    server_data: Optional[Dict[str, Any]]
    resolution: Resolution


@dataclass(slots=True)
class SyncResult:
    entity: str
    server_version: int
    synced_at: datetime
    checksum: str
    changes: List[ServerChange] = field(default_factory=list)
    conflicts: List[ConflictRecord] = field(default_factory=list)
    processed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None
