"""
Mobile authentication flows: login, refresh, logout, tenant switch, and
verification of access tokens presented on protected routes.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from bizflow.mobile.application.dtos import LoginCommand, LoginResult, TenantSwitchResult
from bizflow.mobile.domain.entities import (
    Device,
    IdentityContext,
    Session,
    TokenKind,
    TokenPair,
    TokenPayload,
    UserAccount,
)
from bizflow.mobile.domain.exceptions import (
    DeviceRevokedError,
    InvalidCredentialsError,
    InvalidTokenError,
    RefreshFailedError,
)
from bizflow.mobile.domain.repositories import SessionRegistry, UserDirectory
from bizflow.mobile.infrastructure.adapters.jwt_service import JWTService
from bizflow.shared.exceptions import TenantAccessDeniedError
from bizflow.shared.logging import get_logger, log_security_event

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MobileAuthService:
    def __init__(
        self,
        *,
        jwt_service: JWTService,
        users: UserDirectory,
        sessions: SessionRegistry,
        check_device_revocation: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.jwt = jwt_service
        self.users = users
        self.sessions = sessions
        self.check_device_revocation = check_device_revocation
        self._clock = clock

    @staticmethod
    def _payload(user: UserAccount, tenant_id: str, role: str, device_id: str) -> TokenPayload:
        return TokenPayload(
            user_id=user.id,
            tenant_id=tenant_id,
            device_id=device_id,
            role=role,
            permissions=user.permissions,
        )

    async def login(self, cmd: LoginCommand) -> LoginResult:
        user = await self.users.authenticate(cmd.email, cmd.password)
        if user is None:
            log_security_event("login_failed", device_id=cmd.device_id, details={"email": cmd.email})
            raise InvalidCredentialsError()
        if not user.memberships:
            log_security_event("login_denied_no_tenant", user_id=user.id, device_id=cmd.device_id)
            raise TenantAccessDeniedError("User has no tenant memberships")

        tenant = user.memberships[0]
        now = self._clock()
        await self.sessions.register_device(
            Device(
                device_id=cmd.device_id,
                user_id=user.id,
                tenant_id=tenant.tenant_id,
                platform=cmd.platform,
                device_name=cmd.device_name,
                app_version=cmd.app_version,
                os_version=cmd.os_version,
                created_at=now,
                last_active_at=now,
            )
        )
        await self.sessions.open_session(
            Session(user_id=user.id, device_id=cmd.device_id, tenant_id=tenant.tenant_id, created_at=now)
        )
        tokens = self.jwt.issue_pair(self._payload(user, tenant.tenant_id, tenant.role, cmd.device_id))

        log_security_event(
            "login_succeeded",
            user_id=user.id,
            tenant_id=tenant.tenant_id,
            device_id=cmd.device_id,
            details={"platform": cmd.platform.value, "app_version": cmd.app_version},
        )
        return LoginResult(user=user, tenants=list(user.memberships), current_tenant=tenant, tokens=tokens)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Rotate a token pair. Any verification failure, a revoked session or
        a lost tenant membership all surface as AUTH_REFRESH_FAILED.
        """
        try:
            payload = self.jwt.verify(refresh_token, TokenKind.REFRESH)
        except InvalidTokenError as exc:
            log_security_event("refresh_failed", details={"reason": exc.code.value})
            raise RefreshFailedError() from exc

        if await self.sessions.is_revoked(payload.user_id, payload.device_id):
            log_security_event(
                "refresh_rejected_revoked",
                user_id=payload.user_id,
                tenant_id=payload.tenant_id,
                device_id=payload.device_id,
            )
            raise RefreshFailedError("Session has been revoked")

        user = await self.users.get_user(payload.user_id)
        membership = user.membership(payload.tenant_id) if user else None
        if user is None or not user.is_active or membership is None:
            raise RefreshFailedError()

        tokens = self.jwt.issue_pair(self._payload(user, membership.tenant_id, membership.role, payload.device_id))
        await self.sessions.mark_refreshed(
            payload.user_id, payload.device_id, tenant_id=membership.tenant_id, at=self._clock()
        )
        log_security_event(
            "token_refreshed", user_id=user.id, tenant_id=membership.tenant_id, device_id=payload.device_id
        )
        return tokens

    async def logout(self, identity: IdentityContext) -> None:
        await self.sessions.revoke_session(identity.user_id, identity.device_id)
        log_security_event(
            "logout", user_id=identity.user_id, tenant_id=identity.tenant_id, device_id=identity.device_id
        )

    async def switch_tenant(self, identity: IdentityContext, tenant_id: str) -> TenantSwitchResult:
        user = await self.users.get_user(identity.user_id)
        membership = user.membership(tenant_id) if user else None
        if user is None or membership is None:
            log_security_event(
                "tenant_switch_denied",
                user_id=identity.user_id,
                tenant_id=tenant_id,
                device_id=identity.device_id,
            )
            raise TenantAccessDeniedError(details={"tenantId": tenant_id})

        tokens = self.jwt.issue_pair(self._payload(user, membership.tenant_id, membership.role, identity.device_id))
        await self.sessions.mark_refreshed(
            identity.user_id, identity.device_id, tenant_id=membership.tenant_id, at=self._clock()
        )
        log_security_event(
            "tenant_switched",
            user_id=identity.user_id,
            tenant_id=membership.tenant_id,
            device_id=identity.device_id,
            details={"from": identity.tenant_id},
        )
        return TenantSwitchResult(tenant=membership, tokens=tokens)

    async def authenticate(self, access_token: str) -> IdentityContext:
        """Verify an access token; raises the matching auth DomainError."""
        payload = self.jwt.verify(access_token, TokenKind.ACCESS)
        if self.check_device_revocation and await self.sessions.is_revoked(payload.user_id, payload.device_id):
            raise DeviceRevokedError()
        return IdentityContext.from_payload(payload)
