from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Tuple


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True, slots=True)
class TokenPayload:
    """
    Claims carried by both token classes. Immutable once issued; the
    signed envelope adds iss/aud/iat/exp/jti around it.
    """
    user_id: str
    tenant_id: str
    device_id: str
    role: str
    permissions: Tuple[str, ...] = field(default_factory=tuple)

    def to_claims(self, kind: TokenKind) -> Dict[str, Any]:
        return {
            "sub": self.user_id,
            "tenant_id": self.tenant_id,
            "device_id": self.device_id,
            "role": self.role,
            "permissions": list(self.permissions),
            "type": kind.value,
        }

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "TokenPayload":
        return cls(
            user_id=str(claims["sub"]),
            tenant_id=str(claims["tenant_id"]),
            device_id=str(claims["device_id"]),
            role=str(claims.get("role", "")),
            permissions=tuple(str(p) for p in claims.get("permissions") or ()),
        )


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    expires_in_seconds: int


@dataclass(frozen=True, slots=True)
class IdentityContext:
    """Who is calling; attached to the request by the auth dependency."""
    user_id: str
    tenant_id: str
    device_id: str
    role: str
    permissions: Tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "IdentityContext":
        return cls(
            user_id=payload.user_id,
            tenant_id=payload.tenant_id,
            device_id=payload.device_id,
            role=payload.role,
            permissions=payload.permissions,
        )
