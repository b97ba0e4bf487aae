from fastapi import APIRouter

from . import auth, devices, notifications, sync, system


def build_mobile_router(prefix: str) -> APIRouter:
    router = APIRouter(prefix=prefix)
    router.include_router(system.router)
    router.include_router(auth.router)
    router.include_router(devices.router)
    router.include_router(notifications.router)
    router.include_router(sync.router)
    return router


__all__ = ["build_mobile_router"]
