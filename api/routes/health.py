"""
Health Check Endpoints
======================

Service checks for the database, the user store and the LLM configuration,
plus container probes. The same checks feed /api/monitoring/health.
"""

import logging
import os
import time
from enum import Enum
from typing import Callable, Dict, Optional

import psutil
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from config import Settings
from core.record_store import RecordStore
from api.dependencies import get_app_settings, get_record_store, get_user_store
from api.services.user_store import UserStore
from models import utc_now


logger = logging.getLogger(__name__)

router = APIRouter()

# A failing check on one of these makes the whole service unhealthy
CRITICAL_COMPONENTS = ("api", "llm")


class ComponentStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentCheck(BaseModel):
    """Outcome of checking one dependency."""
    status: ComponentStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = Field(None, description="Round trip of the check in ms")


class ResourceUsage(BaseModel):
    """Host and process resource usage."""
    cpu_percent: float
    memory_percent: float
    memory_available_mb: float
    disk_usage_percent: float
    process_rss_mb: float = Field(description="Resident memory of this worker")


class HealthCheckResponse(BaseModel):
    status: ComponentStatus = Field(description="Worst status across critical components")
    timestamp: str
    version: str
    environment: str
    services: Dict[str, ComponentCheck]
    system_metrics: ResourceUsage


class ProbeResponse(BaseModel):
    status: str
    message: Optional[str] = None
    timestamp: str


def _utc_now() -> str:
    return utc_now().isoformat() + "Z"


def _timed_ping(ping: Callable[[], bool], ok_message: str, failed_message: str) -> ComponentCheck:
    started = time.perf_counter()
    if ping():
        return ComponentCheck(
            status=ComponentStatus.HEALTHY,
            message=ok_message,
            latency_ms=round((time.perf_counter() - started) * 1000, 2),
        )
    return ComponentCheck(status=ComponentStatus.UNHEALTHY, message=failed_message)


def check_database(record_store: Optional[RecordStore]) -> ComponentCheck:
    if record_store is None:
        return ComponentCheck(status=ComponentStatus.UNHEALTHY, message="Record store not initialized")
    backend = record_store.engine.url.get_backend_name()
    return _timed_ping(record_store.ping, f"Connected ({backend})", "Database query failed")


def check_user_store(user_store: UserStore) -> ComponentCheck:
    """The in-memory fallback works but loses users on restart, so it is DEGRADED."""
    if user_store.backend == "memory":
        return ComponentCheck(
            status=ComponentStatus.DEGRADED,
            message="Redis not configured, using in-memory fallback",
        )
    return _timed_ping(user_store.ping, "Connected (redis)", "Redis ping failed")


def check_llm(settings: Settings) -> ComponentCheck:
    """
    Check LLM configuration without calling the provider.

    A missing key with demo fallback enabled is DEGRADED (canned output),
    without the fallback it is UNHEALTHY.
    """
    provider = settings.llm_provider
    if settings.active_llm_api_key:
        return ComponentCheck(
            status=ComponentStatus.HEALTHY,
            message=f"{provider} configured (model: {settings.active_llm_model})",
        )
    if settings.demo_mode_fallback:
        return ComponentCheck(
            status=ComponentStatus.DEGRADED,
            message=f"{provider} API key not configured, serving demo output",
        )
    return ComponentCheck(status=ComponentStatus.UNHEALTHY, message=f"{provider} API key not configured")


def get_system_metrics() -> ResourceUsage:
    """Snapshot of CPU, memory and disk. Zeros when psutil cannot read them."""
    try:
        memory = psutil.virtual_memory()
        return ResourceUsage(
            cpu_percent=round(psutil.cpu_percent(interval=0.1), 2),
            memory_percent=round(memory.percent, 2),
            memory_available_mb=round(memory.available / (1024 * 1024), 2),
            disk_usage_percent=round(psutil.disk_usage(os.getcwd()).percent, 2),
            process_rss_mb=round(psutil.Process().memory_info().rss / (1024 * 1024), 2),
        )
    except (psutil.Error, OSError) as e:
        logger.error(f"Could not read resource usage: {e}")
        return ResourceUsage(
            cpu_percent=0.0,
            memory_percent=0.0,
            memory_available_mb=0.0,
            disk_usage_percent=0.0,
            process_rss_mb=0.0,
        )


def determine_overall_status(services: Dict[str, ComponentCheck]) -> ComponentStatus:
    """UNHEALTHY if a critical component fails, DEGRADED if anything is not healthy."""
    if any(
        services[name].status == ComponentStatus.UNHEALTHY
        for name in CRITICAL_COMPONENTS if name in services
    ):
        return ComponentStatus.UNHEALTHY
    if all(check.status == ComponentStatus.HEALTHY for check in services.values()):
        return ComponentStatus.HEALTHY
    return ComponentStatus.DEGRADED


def collect_service_checks(
    settings: Settings,
    record_store: Optional[RecordStore],
    user_store: UserStore
) -> Dict[str, ComponentCheck]:
    return {
        "api": ComponentCheck(status=ComponentStatus.HEALTHY, message="API is running"),
        "database": check_database(record_store),
        "user_store": check_user_store(user_store),
        "llm": check_llm(settings),
    }


@router.get("/health", response_model=HealthCheckResponse, summary="Service health")
async def health_check(
    settings: Settings = Depends(get_app_settings),
    record_store: Optional[RecordStore] = Depends(get_record_store),
    user_store: UserStore = Depends(get_user_store)
) -> HealthCheckResponse:
    """
    Check every dependency and report resource usage.

    Always answers 200; read ``status`` for the verdict.
    """
    services = collect_service_checks(settings, record_store, user_store)
    overall = determine_overall_status(services)

    if overall != ComponentStatus.HEALTHY:
        failing = sorted(name for name, check in services.items() if check.status != ComponentStatus.HEALTHY)
        logger.warning(f"Health {overall.value}: {', '.join(failing)}")

    return HealthCheckResponse(
        status=overall,
        timestamp=_utc_now(),
        version=settings.app_version,
        environment=settings.environment,
        services=services,
        system_metrics=get_system_metrics(),
    )


@router.get("/health/ready", response_model=ProbeResponse, summary="Readiness probe")
async def readiness_probe(settings: Settings = Depends(get_app_settings)) -> ProbeResponse:
    """200 once the pipeline exists and the LLM (or demo fallback) is usable, else 503."""
    from api.main import app_state

    if app_state.get("pipeline") is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Pipeline not initialized")

    llm = check_llm(settings)
    if llm.status == ComponentStatus.UNHEALTHY:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=llm.message)

    return ProbeResponse(status="ready", message="Application is ready to serve traffic", timestamp=_utc_now())


@router.get("/health/live", response_model=ProbeResponse, summary="Liveness probe")
async def liveness_probe() -> ProbeResponse:
    return ProbeResponse(status="alive", timestamp=_utc_now())
