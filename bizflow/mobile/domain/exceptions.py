"""
Mobile domain exceptions.

All of them are DomainError subclasses, so anything a route lets escape is
translated to the right wire code by the shared handlers.
"""
from __future__ import annotations

from bizflow.shared.error_codes import ErrorCode
from bizflow.shared.exceptions import DomainError


class InvalidTokenError(DomainError):
    """Signature, issuer, audience or structure check failed."""
    code = ErrorCode.AUTH_INVALID_TOKEN


class ExpiredTokenError(InvalidTokenError):
    code = ErrorCode.AUTH_TOKEN_EXPIRED


class WrongTokenKindError(InvalidTokenError):
    """A genuine token, presented on the other kind's verification path."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Expected a {expected} token, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidCredentialsError(DomainError):
    code = ErrorCode.AUTH_INVALID_CREDENTIALS


class RefreshFailedError(DomainError):
    code = ErrorCode.AUTH_REFRESH_FAILED


class DeviceRevokedError(DomainError):
    code = ErrorCode.AUTH_DEVICE_REVOKED
