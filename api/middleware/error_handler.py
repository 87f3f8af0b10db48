"""
Global Error Handler Middleware
================================

Maps custom exceptions to HTTP status codes and formats error responses.
Every error body uses the same envelope as ``TapKarteError.to_dict()``.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from exceptions import (
    TapKarteError,
    InputValidationError,
    ConversionError,
    LLMConfigurationError,
    LLMAuthenticationError,
    LLMRateLimitError,
    LLMTimeoutError,
    AuthenticationError,
    EmailAlreadyRegisteredError,
    UserNotFoundError,
    StorageUnavailableError,
    ConfigurationError,
)
from config import get_settings


logger = logging.getLogger(__name__)


# Map exceptions to HTTP status codes. Lookup walks the MRO, so the most
# specific class listed wins.
EXCEPTION_STATUS_MAP = {
    InputValidationError: status.HTTP_400_BAD_REQUEST,
    EmailAlreadyRegisteredError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    LLMRateLimitError: status.HTTP_429_TOO_MANY_REQUESTS,
    LLMTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
    LLMConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    LLMAuthenticationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ConversionError: status.HTTP_502_BAD_GATEWAY,
    StorageUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(error: TapKarteError) -> int:
    """HTTP status for an exception from our hierarchy."""
    for cls in type(error).__mro__:
        if cls in EXCEPTION_STATUS_MAP:
            return EXCEPTION_STATUS_MAP[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(error: TapKarteError, **extra) -> JSONResponse:
    """JSON response for a TapKarteError, with optional extra body fields."""
    content = error.to_dict()
    content.update(extra)
    headers = None
    if isinstance(error, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=status_code_for(error),
        content=content,
        headers=headers
    )


async def error_handler_middleware(request: Request, call_next):
    """
    Global error handling middleware.

    Catches Tap Karte exceptions and converts them to appropriate
    HTTP responses with structured error bodies.

    Args:
        request: The incoming request
        call_next: The next middleware/route handler

    Returns:
        Response or JSONResponse with error details
    """
    try:
        response = await call_next(request)
        return response
    except TapKarteError as e:
        logger.warning(f"{request.method} {request.url.path} failed: {e.error_type}")
        return error_response(e)
    except Exception as e:
        # Unexpected errors - hide details in production
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        settings = get_settings()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "サーバーエラーが発生しました",
                "error_type": "InternalServerError",
                "errorType": "internal_error",
                "details": {"error": str(e)} if settings.api_debug else {}
            }
        )


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies get the same 400 envelope as our own validation errors."""
    fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "リクエストの形式が正しくありません",
            "error_type": "RequestValidationError",
            "errorType": "validation_error",
            "details": {"fields": [f for f in fields if f]}
        }
    )
