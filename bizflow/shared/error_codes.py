# bizflow/shared/error_codes.py
# Central mapping that aligns with the mobile error contract.
# Keep keys stable: shipped mobile clients branch on these codes.
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class ErrorCode(str, Enum):
    """Every failure kind the mobile API can surface."""

    # ─── Authentication (401) ─────────────────────────────────────────────
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_REFRESH_FAILED = "AUTH_REFRESH_FAILED"
    AUTH_DEVICE_REVOKED = "AUTH_DEVICE_REVOKED"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"

    # ─── Authorization (403) ──────────────────────────────────────────────
    FORBIDDEN = "FORBIDDEN"
    TENANT_ACCESS_DENIED = "TENANT_ACCESS_DENIED"

    # ─── Validation & versioning (400) ────────────────────────────────────
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_API_VERSION = "INVALID_API_VERSION"
    API_VERSION_DEPRECATED = "API_VERSION_DEPRECATED"

    # ─── Resources (404) ──────────────────────────────────────────────────
    NOT_FOUND = "NOT_FOUND"

    # ─── Conflicts (409) ──────────────────────────────────────────────────
    SYNC_CONFLICT = "SYNC_CONFLICT"
    VERSION_MISMATCH = "VERSION_MISMATCH"

    # ─── Rate limiting (429) ──────────────────────────────────────────────
    RATE_LIMITED = "RATE_LIMITED"

    # ─── Server (5xx) ─────────────────────────────────────────────────────
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


@dataclass(frozen=True)
class ErrorSpec:
    http_status: int
    message: str
    retryable: bool


ERROR_CATALOG: Dict[ErrorCode, ErrorSpec] = {
    ErrorCode.AUTH_INVALID_TOKEN: ErrorSpec(401, "Invalid or expired token", retryable=False),
    ErrorCode.AUTH_TOKEN_EXPIRED: ErrorSpec(401, "Token has expired", retryable=True),
    ErrorCode.AUTH_REFRESH_FAILED: ErrorSpec(401, "Token refresh failed", retryable=False),
    ErrorCode.AUTH_DEVICE_REVOKED: ErrorSpec(401, "Device access revoked", retryable=False),
    ErrorCode.AUTH_INVALID_CREDENTIALS: ErrorSpec(401, "Invalid email or password", retryable=False),
    ErrorCode.FORBIDDEN: ErrorSpec(403, "Access denied", retryable=False),
    ErrorCode.TENANT_ACCESS_DENIED: ErrorSpec(403, "Tenant access denied", retryable=False),
    ErrorCode.VALIDATION_ERROR: ErrorSpec(400, "Validation failed", retryable=False),
    ErrorCode.INVALID_REQUEST: ErrorSpec(400, "Invalid request format", retryable=False),
    ErrorCode.INVALID_API_VERSION: ErrorSpec(400, "Invalid API version", retryable=False),
    ErrorCode.API_VERSION_DEPRECATED: ErrorSpec(400, "API version is no longer supported", retryable=False),
    ErrorCode.NOT_FOUND: ErrorSpec(404, "Resource not found", retryable=False),
    ErrorCode.SYNC_CONFLICT: ErrorSpec(409, "Data sync conflict", retryable=True),
    ErrorCode.VERSION_MISMATCH: ErrorSpec(409, "Version mismatch", retryable=True),
    ErrorCode.RATE_LIMITED: ErrorSpec(429, "Too many requests", retryable=True),
    ErrorCode.INTERNAL_ERROR: ErrorSpec(500, "Internal server error", retryable=True),
    ErrorCode.SERVICE_UNAVAILABLE: ErrorSpec(503, "Service temporarily unavailable", retryable=True),
}

_missing = set(ErrorCode) - set(ERROR_CATALOG)
if _missing:
    raise RuntimeError(f"ERROR_CATALOG is missing entries for: {sorted(c.value for c in _missing)}")


def spec_for(code: ErrorCode) -> ErrorSpec:
    return ERROR_CATALOG[code]


# HTTP status -> code, for framework-raised HTTPExceptions (first match wins)
STATUS_TO_CODE: Dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_REQUEST,
    401: ErrorCode.AUTH_INVALID_TOKEN,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.INVALID_REQUEST,
    409: ErrorCode.SYNC_CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.RATE_LIMITED,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}
