"""
Request-scoped dependencies for the mobile routes.

Route-level `dependencies=[...]` resolve before endpoint parameters, so
declaring the rate limiter there and the identity as a parameter gives
the order: rate limit, then auth, then handler.
"""
from __future__ import annotations

from typing import Annotated, Awaitable, Callable, Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bizflow.mobile.application.services import RateLimiter
from bizflow.mobile.container import MobileContainer
from bizflow.mobile.domain.entities import IdentityContext, RateLimitDecision
from bizflow.mobile.domain.exceptions import InvalidTokenError
from bizflow.shared.logging import bind_request_context, get_logger

logger = get_logger(__name__)

DEVICE_ID_HEADER = "X-Device-Id"

# auto_error=False: a missing header must surface as AUTH_INVALID_TOKEN, not a bare 403
bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> MobileContainer:
    return request.app.state.mobile


async def get_identity(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    container: Annotated[MobileContainer, Depends(get_container)],
) -> IdentityContext:
    """
    Verify the bearer access token and attach the caller's identity.

    Raises:
        InvalidTokenError: missing/malformed header, bad or wrong-kind token (401)
        ExpiredTokenError: access token past its expiry (401, retryable)
        DeviceRevokedError: session or device revoked (401)
    """
    if credentials is None or not credentials.credentials:
        raise InvalidTokenError("Missing or malformed Authorization header")

    identity = await container.auth.authenticate(credentials.credentials)
    request.state.identity = identity
    bind_request_context(
        user_id=identity.user_id,
        tenant_id=identity.tenant_id,
        device_id=identity.device_id,
        roles=identity.role,
    )
    return identity


CurrentIdentity = Annotated[IdentityContext, Depends(get_identity)]
Container = Annotated[MobileContainer, Depends(get_container)]


def rate_limit(limiter_class: str) -> Callable[..., Awaitable[RateLimitDecision]]:
    """
    Dependency factory enforcing one limiter class.
    Keyed by caller IP and the X-Device-Id header; adds X-RateLimit-* headers.
    """

    async def _enforce(request: Request, response: Response, container: Container) -> RateLimitDecision:
        key = RateLimiter.caller_key(
            request.client.host if request.client else None,
            request.headers.get(DEVICE_ID_HEADER),
        )
        decision = await container.rate_limiter.enforce(limiter_class, key)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Reset"] = str(decision.reset_in_seconds)
        return decision

    _enforce.__name__ = f"rate_limit_{limiter_class}"
    return _enforce
