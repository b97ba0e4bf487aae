from .api_version_middleware import ApiVersionMiddleware
from .exception_middleware import ExceptionMiddleware
from .logging_middleware import LoggingMiddleware
from .request_id_middleware import RequestIdMiddleware
from .setup import setup_http_middlewares

__all__ = [
    "ApiVersionMiddleware",
    "ExceptionMiddleware",
    "LoggingMiddleware",
    "RequestIdMiddleware",
    "setup_http_middlewares",
]
