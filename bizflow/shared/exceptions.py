from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bizflow.shared.error_codes import STATUS_TO_CODE, ErrorCode, spec_for
from bizflow.shared.logging import get_logger

logger = get_logger("http.errors")

REQUEST_ID_HEADER = "X-Request-ID"


# ───────────────────────── Base & Domain Exceptions ─────────────────────────
class DomainError(Exception):
    """Base class for domain-level errors. Services should raise these, never HTTPException."""
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str = "",
        *,
        details: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.message = message or spec_for(self.code).message
        super().__init__(self.message)
        self.details = details
        # top-level body fields beyond the standard envelope (e.g. retryAfter)
        self.extra = extra or {}
        self.headers = headers or {}


class ValidationError(DomainError):
    code = ErrorCode.VALIDATION_ERROR


class InvalidRequestError(DomainError):
    code = ErrorCode.INVALID_REQUEST


class NotFoundError(DomainError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Optional[str] = None, **kwargs: Any) -> None:
        message = f"{resource_type} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__(message, details={"resourceType": resource_type, "resourceId": resource_id}, **kwargs)


class ForbiddenError(DomainError):
    code = ErrorCode.FORBIDDEN


class TenantAccessDeniedError(DomainError):
    code = ErrorCode.TENANT_ACCESS_DENIED


class SyncConflictError(DomainError):
    code = ErrorCode.SYNC_CONFLICT


class VersionMismatchError(DomainError):
    code = ErrorCode.VERSION_MISMATCH


class RateLimitedError(DomainError):
    code = ErrorCode.RATE_LIMITED

    def __init__(
        self,
        message: str = "",
        *,
        retry_after: int,
        limit: int,
        limiter_class: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            details={"limitType": limiter_class} if limiter_class else None,
            extra={"retryAfter": retry_after},
            headers={
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(retry_after),
                "Retry-After": str(retry_after),
            },
        )
        self.retry_after = retry_after


class InvalidApiVersionError(DomainError):
    code = ErrorCode.INVALID_API_VERSION


class ApiVersionDeprecatedError(DomainError):
    code = ErrorCode.API_VERSION_DEPRECATED

    def __init__(self, requested: str, *, minimum: str, current: str) -> None:
        super().__init__(
            f"API version {requested} is no longer supported. Minimum: {minimum}",
            extra={"upgradeRequired": True, "minimumVersion": minimum, "currentVersion": current},
        )


class InternalServerError(DomainError):
    code = ErrorCode.INTERNAL_ERROR


class ServiceUnavailableError(DomainError):
    code = ErrorCode.SERVICE_UNAVAILABLE


# ───────────────────────────── Classification ──────────────────────────────

@dataclass(frozen=True)
class ApiError:
    """Wire-stable view of any failure."""
    code: ErrorCode
    message: str
    retryable: bool
    http_status: int
    details: Optional[Any] = None
    extra: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)

    def to_body(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self.details is not None:
            body["details"] = self.details
        if request_id:
            body["requestId"] = request_id
        body.update(self.extra)
        return body


def _from_code(code: ErrorCode, message: Optional[str] = None, **kwargs: Any) -> ApiError:
    spec = spec_for(code)
    return ApiError(
        code=code,
        message=message or spec.message,
        retryable=spec.retryable,
        http_status=spec.http_status,
        **kwargs,
    )


def _validation_details(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in errors
    ]


def classify(exc: BaseException, *, expose_internal: bool = False) -> ApiError:
    """
    Map any failure onto the closed ErrorCode taxonomy.
    Unknown exceptions degrade to INTERNAL_ERROR; their message is only
    exposed when `expose_internal` is set (dev environments).
    """
    if isinstance(exc, DomainError):
        return _from_code(exc.code, exc.message, details=exc.details, extra=exc.extra, headers=exc.headers)
    if isinstance(exc, (RequestValidationError, PydanticValidationError)):
        return _from_code(ErrorCode.VALIDATION_ERROR, details=_validation_details(list(exc.errors())))
    if isinstance(exc, StarletteHTTPException):
        code = STATUS_TO_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
        detail = exc.detail if isinstance(exc.detail, str) else None
        api_error = _from_code(code, detail, headers=dict(exc.headers or {}))
        # keep the framework's status (e.g. 405) rather than the code's default
        return ApiError(
            code=api_error.code,
            message=api_error.message,
            retryable=api_error.retryable,
            http_status=exc.status_code,
            headers=api_error.headers,
        )
    message = str(exc) if expose_internal and str(exc) else None
    return _from_code(ErrorCode.INTERNAL_ERROR, message)


def extract_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get(REQUEST_ID_HEADER)


def error_response(api_error: ApiError, request_id: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=api_error.http_status,
        content=jsonable_encoder(api_error.to_body(request_id)),
        headers=dict(api_error.headers),
    )


# ─────────────────────────── Registration ───────────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def handle_domain_error(req: Request, exc: DomainError):
        api_error = classify(exc)
        logger.warning(
            "domain_error",
            code=api_error.code.value,
            message=api_error.message,
            status=api_error.http_status,
            path=req.url.path,
        )
        return error_response(api_error, extract_request_id(req))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(req: Request, exc: RequestValidationError):
        logger.info("request_validation_failed", path=req.url.path, errors=len(exc.errors()))
        return error_response(classify(exc), extract_request_id(req))

    @app.exception_handler(PydanticValidationError)
    async def handle_pydantic_validation(req: Request, exc: PydanticValidationError):
        return error_response(classify(exc), extract_request_id(req))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(req: Request, exc: StarletteHTTPException):
        return error_response(classify(exc), extract_request_id(req))
