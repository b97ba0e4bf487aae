"""
JWT Service - token issuing and verification for mobile clients.

Access and refresh tokens are signed with different secrets so that a leaked
access secret cannot mint refresh tokens. Every token carries iss/aud and a
unique jti.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt

from bizflow.config import Settings
from bizflow.mobile.domain.entities import TokenKind, TokenPair, TokenPayload
from bizflow.mobile.domain.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    WrongTokenKindError,
)
from bizflow.shared.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JWTService:
    """
    JWT token codec.

    `verify` distinguishes three failures: a bad token (InvalidTokenError),
    an expired one (ExpiredTokenError) and a genuine token of the other
    kind (WrongTokenKindError).
    """

    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        issuer: str = "bizflow",
        audience: str = "bizflow-mobile",
        access_lifetime: timedelta = timedelta(minutes=15),
        refresh_lifetime: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if access_secret == refresh_secret:
            raise ValueError("access and refresh secrets must differ")
        self._secrets = {TokenKind.ACCESS: access_secret, TokenKind.REFRESH: refresh_secret}
        self._algorithm = algorithm
        self._issuer = issuer
        self._audience = audience
        self.access_lifetime = access_lifetime
        self.refresh_lifetime = refresh_lifetime
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "JWTService":
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            access_lifetime=timedelta(seconds=settings.access_token_lifetime_seconds),
            refresh_lifetime=timedelta(seconds=settings.refresh_token_lifetime_seconds),
        )

    # ------------------------------------------------------------------ issue

    def _lifetime(self, kind: TokenKind) -> timedelta:
        return self.access_lifetime if kind is TokenKind.ACCESS else self.refresh_lifetime

    def issue(
        self,
        kind: TokenKind,
        payload: TokenPayload,
        lifetime: Optional[timedelta] = None,
        *,
        now: Optional[datetime] = None,
    ) -> str:
        now = now or self._clock()
        expires_at = now + (lifetime if lifetime is not None else self._lifetime(kind))
        claims: Dict[str, Any] = {
            **payload.to_claims(kind),
            "iss": self._issuer,
            "aud": self._audience,
            "iat": now,
            "exp": expires_at,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(claims, self._secrets[kind], algorithm=self._algorithm)

    def issue_pair(self, payload: TokenPayload) -> TokenPair:
        now = self._clock()
        access_expires_at = now + self.access_lifetime
        refresh_expires_at = now + self.refresh_lifetime
        return TokenPair(
            access_token=self.issue(TokenKind.ACCESS, payload, now=now),
            refresh_token=self.issue(TokenKind.REFRESH, payload, now=now),
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
            expires_in_seconds=int(self.access_lifetime.total_seconds()),
        )

    # ----------------------------------------------------------------- verify

    def _declared_kind(self, token: str) -> TokenKind:
        try:
            unverified = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as exc:
            raise InvalidTokenError("Malformed token") from exc
        try:
            return TokenKind(unverified.get("type"))
        except ValueError as exc:
            raise InvalidTokenError("Unknown token type") from exc

    def _decode(self, token: str, kind: TokenKind) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self._algorithm],
                issuer=self._issuer,
                audience=self._audience,
                options={"require": ["exp", "iat", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredTokenError() from exc
        except jwt.PyJWTError as exc:
            logger.info("token_rejected", kind=kind.value, reason=type(exc).__name__)
            raise InvalidTokenError() from exc

    def verify(self, token: str, kind: TokenKind) -> TokenPayload:
        """
        Verify `token` on the `kind` path.

        The declared kind is read first and the token is verified with that
        kind's secret, so a genuine token of the wrong kind is reported as
        such instead of as a signature failure.
        """
        declared = self._declared_kind(token)
        claims = self._decode(token, declared)
        if declared is not kind:
            raise WrongTokenKindError(kind.value, declared.value)
        try:
            return TokenPayload.from_claims(claims)
        except KeyError as exc:
            raise InvalidTokenError(f"Missing claim: {exc.args[0]}") from exc
