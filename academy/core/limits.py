import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from academy.core.config import RATE_LIMIT_ENABLED, RATE_LIMIT_DEFAULT

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=RATE_LIMIT_ENABLED,
)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same envelope as the other API errors"""
    logger.warning(
        f"Rate limit exceeded: {request.method} {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "limit": str(exc.detail),
            "client_ip": get_remote_address(request),
        },
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMIT_EXCEEDED",
            "message": f"Rate limit exceeded: {exc.detail}",
            "details": {"limit": str(exc.detail)},
            "path": request.url.path,
        },
    )
