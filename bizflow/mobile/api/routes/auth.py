# bizflow/mobile/api/routes/auth.py

from fastapi import APIRouter, Depends, status

from bizflow.mobile.api.dependencies import Container, CurrentIdentity, rate_limit
from bizflow.mobile.api.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    SuccessResponse,
    SwitchTenantRequest,
    SwitchTenantResponse,
    TokenPairOut,
)
from bizflow.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Mobile:Auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(rate_limit("auth"))],
)
async def login(payload: LoginRequest, container: Container) -> LoginResponse:
    """
    Authenticate with email/password and register the calling device.

    The first tenant membership becomes the current tenant; use
    /auth/switch-tenant to change it.
    """
    result = await container.auth.login(payload.to_command())
    return LoginResponse.from_result(result)


@router.post("/refresh", response_model=RefreshResponse, dependencies=[Depends(rate_limit("auth"))])
async def refresh(payload: RefreshRequest, container: Container) -> RefreshResponse:
    tokens = await container.auth.refresh(payload.refresh_token)
    return RefreshResponse(tokens=TokenPairOut.from_pair(tokens))


@router.post("/logout", response_model=SuccessResponse, dependencies=[Depends(rate_limit("api"))])
async def logout(identity: CurrentIdentity, container: Container) -> SuccessResponse:
    """Revoke the caller's session; its access token stops working immediately."""
    await container.auth.logout(identity)
    return SuccessResponse()


@router.post(
    "/switch-tenant",
    response_model=SwitchTenantResponse,
    dependencies=[Depends(rate_limit("auth"))],
)
async def switch_tenant(
    payload: SwitchTenantRequest, identity: CurrentIdentity, container: Container
) -> SwitchTenantResponse:
    result = await container.auth.switch_tenant(identity, payload.tenant_id)
    return SwitchTenantResponse.from_result(result)
