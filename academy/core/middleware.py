import time
import logging
import uuid
from typing import Callable, Iterable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from academy.core.logging_utils import error_tracker

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PATHS = ("/health", "/docs", "/openapi.json", "/redoc")


def get_client_ip(request: Request) -> str:
    """Client address behind the reverse proxy"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (
        request.client.host if request.client else "unknown"
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request, tagged with a request id (echoed back in
    X-Request-ID) and the coach who made it. Requests slower than
    slow_request_threshold seconds are logged as warnings.
    """

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[Iterable[str]] = None,
        slow_request_threshold: float = 1.0,
    ):
        super().__init__(app)
        self.exclude_paths = set(exclude_paths or DEFAULT_EXCLUDE_PATHS)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} raised {type(e).__name__}",
                extra={
                    "request_id": request_id,
                    "client_ip": get_client_ip(request),
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "error_message": str(e),
                },
            )
            raise

        duration = time.perf_counter() - started
        slow = duration > self.slow_request_threshold
        logger.log(
            logging.WARNING if slow else logging.INFO,
            f"{request.method} {request.url.path} -> {response.status_code}"
            + (" (slow)" if slow else ""),
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": str(request.query_params) or None,
                "status_code": response.status_code,
                "duration_ms": round(duration * 1000, 2),
                "coach_id": getattr(request.state, "coach_id", None),
                "client_ip": get_client_ip(request),
            },
        )

        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


class ErrorTrackingMiddleware(BaseHTTPMiddleware):
    """Counts server-side failures per endpoint in the error tracker"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except Exception as e:
            error_tracker.track_error(
                f"UNHANDLED_{type(e).__name__}",
                str(e),
                {"method": request.method, "path": request.url.path},
            )
            raise

        if response.status_code >= 500:
            error_tracker.track_error(
                f"HTTP_{response.status_code}",
                f"{request.method} {request.url.path} answered {response.status_code}",
                {
                    "method": request.method,
                    "path": request.url.path,
                    "coach_id": getattr(request.state, "coach_id", None),
                },
            )

        return response


def setup_middleware(app, config: dict = None):
    """
    Install the middleware stack. Starlette runs middleware in reverse order
    of registration, so request logging (added last) wraps everything else.
    """
    config = config or {}

    app.add_middleware(ErrorTrackingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RequestLoggingMiddleware,
        exclude_paths=config.get("exclude_paths", DEFAULT_EXCLUDE_PATHS),
        slow_request_threshold=config.get("slow_request_threshold", 1.0),
    )

    logger.info("Middleware configured")
