from __future__ import annotations

from fastapi import FastAPI

from bizflow.config import Settings

from .api_version_middleware import ApiVersionMiddleware
from .exception_middleware import ExceptionMiddleware
from .logging_middleware import LoggingMiddleware
from .request_id_middleware import RequestIdMiddleware


def setup_http_middlewares(app: FastAPI, settings: Settings) -> None:
    """
    Install middlewares. Starlette wraps in reverse registration order,
    so the last one added is the outermost:

      RequestId -> Logging -> ApiVersion -> Exception -> routes
    """
    # innermost: translate anything the route handlers let escape
    app.add_middleware(ExceptionMiddleware, expose_internal_errors=settings.is_dev)

    # version gate runs before rate limiting/auth (route dependencies)
    app.add_middleware(
        ApiVersionMiddleware,
        supported=settings.API_SUPPORTED_VERSIONS,
        current=settings.API_CURRENT_VERSION,
        minimum=settings.API_MIN_VERSION,
        path_prefix=settings.MOBILE_API_PREFIX,
    )

    app.add_middleware(LoggingMiddleware)

    # outermost: correlation id (used by everything else)
    app.add_middleware(RequestIdMiddleware)
