from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from bizflow.shared.exceptions import DomainError, classify, error_response, extract_request_id
from bizflow.shared.logging import get_logger

logger = get_logger("http")


class ExceptionMiddleware(BaseHTTPMiddleware):
    """
    Centralized error translation to the mobile error contract.
    Never leaks stack traces; always returns {error, message, retryable, ...} JSON.
    Catches whatever escapes the route-level exception handlers.
    """

    def __init__(self, app: ASGIApp, *, expose_internal_errors: bool = False) -> None:
        super().__init__(app)
        self.expose_internal_errors = expose_internal_errors

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except DomainError as exc:
            api_error = classify(exc)
            logger.warning(
                "domain_error",
                code=api_error.code.value,
                message=api_error.message,
                status=api_error.http_status,
            )
            return error_response(api_error, extract_request_id(request))
        except Exception as exc:
            logger.exception("unhandled_exception", error_type=type(exc).__name__)
            api_error = classify(exc, expose_internal=self.expose_internal_errors)
            return error_response(api_error, extract_request_id(request))
