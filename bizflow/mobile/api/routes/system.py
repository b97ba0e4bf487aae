# bizflow/mobile/api/routes/system.py

from datetime import datetime, timezone

from fastapi import APIRouter

from bizflow.mobile.api.dependencies import Container
from bizflow.mobile.api.schemas import (
    ApiVersionInfo,
    ClientConfigResponse,
    ClientLimits,
    FeatureFlags,
    HealthResponse,
)

router = APIRouter(tags=["Mobile:System"])


@router.get("/health", response_model=HealthResponse)
async def health(container: Container) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=container.settings.PROJECT_VERSION,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/config", response_model=ClientConfigResponse)
async def client_config(container: Container) -> ClientConfigResponse:
    """Capability discovery for clients: versions, feature flags and limits."""
    s = container.settings
    return ClientConfigResponse(
        api_version=ApiVersionInfo(
            current=s.API_CURRENT_VERSION,
            minimum=s.API_MIN_VERSION,
            supported=list(s.API_SUPPORTED_VERSIONS),
        ),
        features=FeatureFlags(offline_sync=True, push_notifications=True, biometric_auth=True),
        limits=ClientLimits(
            max_sync_batch_size=s.SYNC_MAX_BATCH_SIZE,
            max_upload_size=s.MAX_UPLOAD_SIZE_BYTES,
            sync_interval_seconds=s.SYNC_INTERVAL_SECONDS,
            sync_page_size=s.SYNC_PAGE_SIZE,
        ),
    )
