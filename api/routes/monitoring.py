"""
Monitoring Endpoints
====================

Usage statistics, system information and security posture.
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, validate_environment
from core.record_store import RecordStore
from exceptions import StorageUnavailableError
from api.dependencies import get_app_settings, get_record_store, get_user_store
from api.routes.health import collect_service_checks, determine_overall_status
from api.services.user_store import UserStore
from models import utc_now


logger = logging.getLogger(__name__)

router = APIRouter()

STATS_WINDOW_HOURS = 24

_started_at = time.time()


def _now() -> str:
    return utc_now().isoformat() + "Z"


@router.get("/health")
async def monitoring_health(
    settings: Settings = Depends(get_app_settings),
    record_store: Optional[RecordStore] = Depends(get_record_store),
    user_store: UserStore = Depends(get_user_store)
) -> dict:
    """Compact service status with uptime and configuration warnings."""
    services = collect_service_checks(settings, record_store, user_store)
    is_valid, issues = validate_environment(settings)

    data = {
        "status": determine_overall_status(services).value,
        "timestamp": _now(),
        "version": settings.app_version,
        "environment": settings.environment,
        "services": {name: check.status.value for name, check in services.items()},
        "environment_config": "valid" if is_valid else "warning",
        "uptime": int(time.time() - _started_at),
    }
    if issues:
        data["warnings"] = issues
    return {"success": True, "data": data}


def _collect_stats(record_store: RecordStore) -> dict:
    records = record_store.get_record_stats(STATS_WINDOW_HOURS)
    return {
        "totalRequests": records["total_records"],
        "averageResponseTime": records["avg_response_time"],
        "errorRate": record_store.get_error_rate(STATS_WINDOW_HOURS),
        "lastUpdated": _now(),
        "period": f"{STATS_WINDOW_HOURS}_hours",
        "performance": {
            "minResponseTime": records["min_response_time"],
            "maxResponseTime": records["max_response_time"],
            "activeDays": records["active_days"],
        },
        "usage_patterns": record_store.get_usage_patterns(STATS_WINDOW_HOURS),
        "status_codes": record_store.get_performance_breakdown(STATS_WINDOW_HOURS),
        "security_events": record_store.get_security_breakdown(STATS_WINDOW_HOURS),
    }


@router.get("/stats")
async def monitoring_stats(
    record_store: Optional[RecordStore] = Depends(get_record_store)
) -> dict:
    """
    Aggregates over the last 24 hours.

    Raises:
        StorageUnavailableError: 503 when the database is unavailable
    """
    if record_store is None:
        raise StorageUnavailableError("records", "Record store not initialized")

    try:
        stats = await run_in_threadpool(_collect_stats, record_store)
    except SQLAlchemyError as e:
        logger.error(f"Statistics query failed: {e}")
        raise StorageUnavailableError("records", type(e).__name__)

    logger.info(
        f"Statistics retrieved: {stats['totalRequests']} records, "
        f"avg {stats['averageResponseTime']}ms"
    )
    return {"success": True, "data": stats}


@router.get("/info")
async def monitoring_info(
    settings: Settings = Depends(get_app_settings),
    record_store: Optional[RecordStore] = Depends(get_record_store)
) -> dict:
    """Static application and model information."""
    return {
        "success": True,
        "data": {
            "application": {
                "name": settings.app_name,
                "version": settings.app_version,
                "environment": settings.environment,
            },
            "ai_service": {
                "provider": settings.llm_provider,
                "model": settings.active_llm_model,
                "default_char_limit": settings.default_char_limit,
                "min_char_limit": settings.min_char_limit,
                "max_char_limit": settings.max_char_limit,
                "timeout": settings.llm_timeout,
            },
            "features": {
                "ai_conversion": True,
                "demo_fallback": settings.demo_mode_fallback,
                "medical_dictionary": True,
                "data_persistence": record_store is not None and settings.record_history,
                "performance_monitoring": settings.record_performance,
                "google_login": bool(settings.google_client_id),
            },
            "endpoints": {
                "conversion": "/api/convert",
                "authentication": "/api/auth/login",
                "history": "/api/history",
                "health_check": "/api/monitoring/health",
                "statistics": "/api/monitoring/stats",
            },
            "timestamp": _now(),
        },
    }


@router.get("/security")
async def monitoring_security(settings: Settings = Depends(get_app_settings)) -> dict:
    """Security configuration summary. Issue details only in development."""
    is_valid, issues = validate_environment(settings)

    environment_validation = {
        "is_valid": is_valid,
        "issues_count": len(issues),
    }
    if settings.is_development:
        environment_validation["issues"] = issues

    return {
        "success": True,
        "data": {
            "environment_validation": environment_validation,
            "security_features": {
                "input_validation": True,
                "personal_info_detection": True,
                "cors_protection": True,
                "security_headers": True,
                "rate_limiting": True,
                "request_logging": True,
            },
            "compliance": {
                "data_retention": "history_enabled" if settings.record_history else "temporary_processing_only",
                "personal_info_policy": "detection_and_blocking",
                "encryption": "https_tls",
                "audit_logging": "enabled" if settings.record_security_events else "disabled",
            },
            "timestamp": _now(),
        },
    }
