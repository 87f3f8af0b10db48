"""
Rate Limiting Middleware
========================

Rate limiting setup using slowapi.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from config import get_settings


# Create limiter instance with IP-based rate limiting
limiter = Limiter(key_func=get_remote_address)


def convert_rate_limit() -> str:
    """Limit applied to POST /api/convert, read from settings at request time."""
    return get_settings().rate_limit_convert


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 response in the standard error envelope."""
    response = JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "リクエストが多すぎます。しばらく待ってから再試行してください",
            "error_type": "RateLimitExceeded",
            "errorType": "rate_limit_error",
            "details": {"limit": str(exc.detail)}
        }
    )
    return request.app.state.limiter._inject_headers(
        response, getattr(request.state, "view_rate_limit", None)
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """
    Set up rate limiting for the FastAPI application.

    Attaches the limiter to the app state and registers
    the exception handler for rate limit exceeded errors.

    Args:
        app: The FastAPI application instance

    Usage in routes:
        from api.middleware.rate_limiter import limiter, convert_rate_limit

        @router.post("/convert")
        @limiter.limit(convert_rate_limit)
        async def convert(request: Request, ...):
            ...
    """
    # Attach limiter to app state for access in routes
    app.state.limiter = limiter

    # Register exception handler for rate limit exceeded
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
