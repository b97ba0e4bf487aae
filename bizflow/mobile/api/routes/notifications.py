# bizflow/mobile/api/routes/notifications.py

from fastapi import APIRouter, Depends

from bizflow.mobile.api.dependencies import Container, CurrentIdentity, rate_limit
from bizflow.mobile.api.schemas import PushDeviceRequest, SuccessResponse

router = APIRouter(
    prefix="/notifications",
    tags=["Mobile:Notifications"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.post("/devices", response_model=SuccessResponse)
async def register_push_device(
    payload: PushDeviceRequest, identity: CurrentIdentity, container: Container
) -> SuccessResponse:
    await container.devices.register_push_token(identity, payload.to_registration())
    return SuccessResponse()


@router.delete("/devices/{token}", response_model=SuccessResponse)
async def unregister_push_device(token: str, identity: CurrentIdentity, container: Container) -> SuccessResponse:
    await container.devices.unregister_push_token(identity, token)
    return SuccessResponse()
