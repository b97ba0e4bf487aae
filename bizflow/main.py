from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from bizflow.config import Settings, get_settings
from bizflow.mobile.api.routes import build_mobile_router
from bizflow.mobile.container import MobileContainer, build_container
from bizflow.shared.exceptions import register_exception_handlers
from bizflow.shared.http.middleware import setup_http_middlewares
from bizflow.shared.logging import configure_logging, get_logger

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, *, container: Optional[MobileContainer] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)
    mobile = container or build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        mobile.sweeper.start()
        logger.info("app_started", env=settings.ENVIRONMENT, prefix=settings.MOBILE_API_PREFIX)
        try:
            yield
        finally:
            await mobile.close()
            logger.info("app_stopped")

    app = FastAPI(
        title=f"{settings.PROJECT_NAME} Mobile API",
        version=settings.PROJECT_VERSION,
        swagger_ui_parameters={"persistAuthorization": True},
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.mobile = mobile

    setup_http_middlewares(app, settings)

    # outermost, so preflight requests never reach the version gate
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-API-Version",
            "X-API-Current-Version",
            "X-API-Min-Version",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    app.include_router(build_mobile_router(settings.MOBILE_API_PREFIX))

    # {error, message, details?, retryable, timestamp, requestId?}
    register_exception_handlers(app)

    # ---- Custom OpenAPI to add Bearer auth ----
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title=app.title,
            version=app.version,
            routes=app.routes,
        )
        schema.setdefault("components", {}).setdefault("securitySchemes", {})["bearerAuth"] = {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[method-assign]
    return app


app = create_app()
