from __future__ import annotations

from typing import List

from bizflow.mobile.application.dtos import PushRegistration
from bizflow.mobile.domain.entities import Device, IdentityContext
from bizflow.mobile.domain.repositories import NotificationService, SessionRegistry
from bizflow.shared.exceptions import NotFoundError
from bizflow.shared.logging import log_security_event


class DeviceService:
    """Device listing/revocation and push-token registration for the caller."""

    def __init__(self, *, sessions: SessionRegistry, notifications: NotificationService) -> None:
        self.sessions = sessions
        self.notifications = notifications

    async def list_devices(self, identity: IdentityContext) -> List[Device]:
        return await self.sessions.list_devices(identity.user_id)

    async def revoke_device(self, identity: IdentityContext, device_id: str) -> None:
        if not await self.sessions.revoke_device(identity.user_id, device_id):
            raise NotFoundError("Device", device_id)
        log_security_event(
            "device_revoked",
            user_id=identity.user_id,
            tenant_id=identity.tenant_id,
            device_id=device_id,
            details={"revoked_by_device": identity.device_id},
        )

    async def register_push_token(self, identity: IdentityContext, registration: PushRegistration) -> None:
        await self.notifications.register_device(
            user_id=identity.user_id,
            tenant_id=identity.tenant_id,
            token=registration.token,
            platform=registration.platform.value,
            device_id=registration.device_id,
            device_name=registration.device_name,
        )

    async def unregister_push_token(self, identity: IdentityContext, token: str) -> None:
        if not await self.notifications.unregister_device(user_id=identity.user_id, token=token):
            raise NotFoundError("Push registration")
