# bizflow/mobile/api/routes/devices.py

from fastapi import APIRouter, Depends

from bizflow.mobile.api.dependencies import Container, CurrentIdentity, rate_limit
from bizflow.mobile.api.schemas import DeviceListResponse, DeviceOut, SuccessResponse

router = APIRouter(prefix="/devices", tags=["Mobile:Devices"], dependencies=[Depends(rate_limit("api"))])


@router.get("", response_model=DeviceListResponse)
async def list_devices(identity: CurrentIdentity, container: Container) -> DeviceListResponse:
    devices = await container.devices.list_devices(identity)
    return DeviceListResponse(
        devices=[DeviceOut.from_device(d, current_device_id=identity.device_id) for d in devices]
    )


@router.delete("/{device_id}", response_model=SuccessResponse)
async def revoke_device(device_id: str, identity: CurrentIdentity, container: Container) -> SuccessResponse:
    """Revoke one of the caller's devices; its tokens are rejected from now on."""
    await container.devices.revoke_device(identity, device_id)
    return SuccessResponse()
