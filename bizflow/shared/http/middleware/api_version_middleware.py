from __future__ import annotations

from typing import Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from bizflow.shared.exceptions import (
    ApiVersionDeprecatedError,
    DomainError,
    InvalidApiVersionError,
    classify,
    error_response,
    extract_request_id,
)
from bizflow.shared.logging import bind_request_context, get_logger

logger = get_logger("http.versioning")

API_VERSION_HEADER = "X-API-Version"
API_VERSION_QUERY_PARAM = "apiVersion"


class ApiVersionMiddleware(BaseHTTPMiddleware):
    """
    Negotiates the protocol version before any other processing
    (rate limiting and auth run later as route dependencies).

    Versions are ordered by their position in `supported`; anything
    positioned before `minimum` is a hard stop with upgradeRequired=true.
    Every gated response, errors included, is annotated with the
    current/minimum versions so clients can detect staleness.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        supported: Sequence[str],
        current: str,
        minimum: str,
        path_prefix: str = "",
    ) -> None:
        super().__init__(app)
        self.supported = list(supported)
        self.current = current
        self.minimum = minimum
        self.path_prefix = path_prefix.rstrip("/")

    def _requested_version(self, request: Request) -> str:
        return (
            request.headers.get(API_VERSION_HEADER)
            or request.query_params.get(API_VERSION_QUERY_PARAM)
            or self.current
        )

    def negotiate(self, requested: str) -> str:
        if requested not in self.supported:
            raise InvalidApiVersionError(
                f"Invalid API version. Supported versions: {', '.join(self.supported)}",
                details={"requested": requested, "supported": self.supported},
            )
        if self.supported.index(requested) < self.supported.index(self.minimum):
            raise ApiVersionDeprecatedError(requested, minimum=self.minimum, current=self.current)
        return requested

    def _annotate(self, response: Response, version: Optional[str]) -> Response:
        response.headers[API_VERSION_HEADER] = version or self.current
        response.headers["X-API-Current-Version"] = self.current
        response.headers["X-API-Min-Version"] = self.minimum
        return response

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if self.path_prefix and not (path == self.path_prefix or path.startswith(self.path_prefix + "/")):
            return await call_next(request)

        requested = self._requested_version(request)
        try:
            version = self.negotiate(requested)
        except DomainError as exc:
            logger.info("api_version_rejected", requested=requested, code=exc.code.value)
            response = error_response(classify(exc), extract_request_id(request))
            return self._annotate(response, None)

        request.state.api_version = version
        bind_request_context(api_version=version)
        response = await call_next(request)
        return self._annotate(response, version)
