"""
FastAPI Main Application
========================

Main FastAPI application instance with middleware, routes, and lifespan management.
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Any

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from api.middleware.error_handler import (
    error_handler_middleware,
    request_validation_exception_handler,
)
from api.middleware.rate_limiter import setup_rate_limiting
from api.middleware.request_context import (
    request_logging_middleware,
    security_headers_middleware,
)
from api.routes import auth, convert, health, history, monitoring, pages
from api.services.user_store import create_user_store
from config import get_settings, validate_environment
from core.record_store import create_record_store
from exceptions import StorageUnavailableError
from pipeline import create_pipeline


# Global application state - stores pipeline and other singletons
app_state: Dict[str, Any] = {}


def configure_logging(level: str, fmt: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=fmt)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan event handler for startup and shutdown.

    Startup:
    - Configures logging and checks production settings
    - Opens the record store and user store
    - Builds the conversion pipeline
    - Stores references in app_state for dependency injection

    Shutdown:
    - Disposes the database engine and clears state
    """
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    print("🚀 Starting Tap Karte API...")
    print(f"   LLM provider: {settings.llm_provider} ({settings.active_llm_model})")

    _, issues = validate_environment(settings)
    for issue in issues:
        print(f"⚠️  {issue}")

    try:
        record_store = create_record_store(settings)
        print("✅ Record store ready")
    except StorageUnavailableError as e:
        print(f"❌ Record store unavailable: {e.details.get('original_error')}")
        # History and stats report unavailable; conversion still works
        record_store = None

    app_state["settings"] = settings
    app_state["record_store"] = record_store
    app_state["user_store"] = create_user_store(settings)
    app_state["pipeline"] = create_pipeline(settings, record_store=record_store)

    if not settings.active_llm_api_key:
        print("⚠️  No LLM API key configured - conversions return demo output")

    print(f"📍 API running at http://{settings.api_host}:{settings.api_port}")
    print(f"📚 Docs available at http://{settings.api_host}:{settings.api_port}/api/docs")

    yield  # Application runs here

    print("\n🛑 Shutting down Tap Karte API...")
    if app_state.get("record_store") is not None:
        app_state["record_store"].engine.dispose()
    app_state.clear()
    print("✅ Cleanup complete")


# Create FastAPI application
app = FastAPI(
    title="Tap Karte API",
    description="""
    Nursing documentation assistant - convert informal memos into clinical records.

    ## Features
    - Memo to record/report conversion with Gemini (Anthropic Claude as backup)
    - Narrative or SOAP format, polite or plain style, output length limit
    - Personal information screening before anything leaves the server
    - Conversion history per user or anonymous session

    ## Authentication
    Conversion works anonymously. Register/login (or Google sign-in) to keep
    history across devices; send the token as a Bearer header.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# =============================================================================
# Middleware Setup (order matters - last added = outermost)
# =============================================================================

# Get settings for middleware configuration
settings = get_settings()

# Global error handling middleware (innermost, so headers and logging see its responses)
app.middleware("http")(error_handler_middleware)

# Security headers on every response
app.middleware("http")(security_headers_middleware)

# Request id, timing and performance stats
app.middleware("http")(request_logging_middleware)

# Trusted Host middleware - security against host header attacks
# In production, set this to your actual domains
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["*"]  # Configure for production: ["tap-karte.com"]
)

# CORS middleware - allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=settings.cors_origin_regex,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Session-Id"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)

# Malformed bodies use the same 400 envelope as domain validation errors
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Rate limiting setup
setup_rate_limiting(app)


# =============================================================================
# Router Registration
# =============================================================================

# Page and API info endpoints
app.include_router(pages.router)

# Health check endpoints (no auth required)
app.include_router(health.router, prefix="/api", tags=["health"])

# Conversion endpoint
app.include_router(convert.router, prefix="/api", tags=["convert"])

# History endpoints
app.include_router(history.router, prefix="/api", tags=["history"])

# Authentication endpoints
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])

# Monitoring endpoints
app.include_router(monitoring.router, prefix="/api/monitoring", tags=["monitoring"])
