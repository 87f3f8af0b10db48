"""
Request Context Middleware
==========================

Per-request bookkeeping:

- request id on ``request.state`` and in the ``X-Request-ID`` header
- response time in the ``X-Response-Time`` header, slow requests logged
- one ``performance_stats`` row per /api request (best effort)
- security headers on every response
"""

import logging
import random
import string
import time

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from config import get_settings


logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://accounts.google.com; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; "
        "connect-src 'self' https://accounts.google.com https://www.googleapis.com; "
        "frame-src https://accounts.google.com"
    ),
}


def generate_request_id() -> str:
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def client_ip(request: Request) -> str:
    """Client address, preferring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


async def security_headers_middleware(request: Request, call_next):
    """Add security headers to every response."""
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


async def request_logging_middleware(request: Request, call_next):
    """
    Assign a request id, time the request and record /api performance.

    Args:
        request: The incoming request
        call_next: The next middleware/route handler
    """
    settings = get_settings()
    request_id = generate_request_id()
    request.state.request_id = request_id
    started = time.perf_counter()

    response = await call_next(request)

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time"] = f"{elapsed_ms}ms"

    path = request.url.path
    logger.info(f"[{request_id}] {request.method} {path} -> {response.status_code} ({elapsed_ms}ms)")
    if elapsed_ms > settings.slow_request_threshold_ms:
        logger.warning(f"[{request_id}] Slow request: {request.method} {path} took {elapsed_ms}ms")

    if path.startswith("/api/") and settings.record_performance:
        from api.main import app_state

        record_store = app_state.get("record_store")
        if record_store is not None:
            error_type = f"http_{response.status_code}" if response.status_code >= 400 else None
            try:
                await run_in_threadpool(
                    record_store.log_performance,
                    path,
                    request.method,
                    response.status_code,
                    elapsed_ms,
                    error_type,
                    client_ip(request),
                )
            except SQLAlchemyError as e:
                logger.error(f"[{request_id}] Failed to save performance stats: {e}")

    return response
