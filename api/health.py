"""
Health checks for the logistics KPI API.

Liveness only confirms the process answers; readiness requires the
facility registry to be loaded. The full check also reports the loaded
batch and Redis (when rate limiting uses it).
"""
import logging
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from enum import Enum
from dataclasses import dataclass
import time

import redis

from api.config import settings
from api.cache import get_all_cache_stats
from api.state import get_app_state

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class HealthStatus(Enum):
    """Health check status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""
    name: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_registry_health() -> ComponentHealth:
    """Facility registry loaded and non-empty."""
    app_state = get_app_state()
    if not app_state.registry_loaded:
        return ComponentHealth(
            name="facility_registry",
            status=HealthStatus.UNHEALTHY,
            message="Registry not loaded",
        )
    registry = app_state.registry
    if len(registry) == 0:
        return ComponentHealth(
            name="facility_registry",
            status=HealthStatus.UNHEALTHY,
            message="Registry is empty",
        )
    return ComponentHealth(
        name="facility_registry",
        status=HealthStatus.HEALTHY,
        message=f"{len(registry)} facilities",
        details={
            "drilling_codes": len(registry.drilling_codes),
            "production_codes": len(registry.production_codes),
        },
    )


def check_batch_health() -> ComponentHealth:
    """A batch is optional; its absence degrades rather than fails."""
    loaded = get_app_state().get_batch()
    if loaded is None:
        return ComponentHealth(
            name="batch",
            status=HealthStatus.DEGRADED,
            message="No record batch loaded",
        )
    return ComponentHealth(
        name="batch",
        status=HealthStatus.HEALTHY,
        message=f"Batch {loaded.batch_id} loaded",
        details={"counts": loaded.batch.counts(), "loaded_at": loaded.loaded_at.isoformat()},
    )


def check_redis_health() -> ComponentHealth:
    """Check Redis connectivity."""
    if not settings.redis_enabled:
        return ComponentHealth(
            name="redis",
            status=HealthStatus.HEALTHY,
            message="Redis disabled (not required)",
        )

    start = time.perf_counter()
    try:
        client = redis.from_url(settings.redis_url, socket_connect_timeout=5, socket_timeout=5)
        pong = client.ping()
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        if pong:
            return ComponentHealth(
                name="redis",
                status=HealthStatus.HEALTHY,
                latency_ms=latency_ms,
                message="Redis connected",
            )
        return ComponentHealth(name="redis", status=HealthStatus.UNHEALTHY, message="Ping failed")
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return ComponentHealth(
            name="redis",
            status=HealthStatus.DEGRADED,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
            message=f"Connection failed: {type(e).__name__}",
        )


async def perform_full_health_check() -> Dict[str, Any]:
    """Overall status is the worst component status."""
    start = time.perf_counter()
    components = [check_registry_health(), check_batch_health(), check_redis_health()]

    if any(c.status == HealthStatus.UNHEALTHY for c in components):
        overall = HealthStatus.UNHEALTHY
    elif any(c.status == HealthStatus.DEGRADED for c in components):
        overall = HealthStatus.DEGRADED
    else:
        overall = HealthStatus.HEALTHY

    return {
        "status": overall.value,
        "timestamp": _timestamp(),
        "version": API_VERSION,
        "check_duration_ms": round((time.perf_counter() - start) * 1000, 2),
        "components": {
            c.name: {
                "status": c.status.value,
                "latency_ms": c.latency_ms,
                "message": c.message,
                **({"details": c.details} if c.details else {}),
            }
            for c in components
        },
    }


async def perform_liveness_check() -> Dict[str, Any]:
    return {"status": "alive", "timestamp": _timestamp()}


async def perform_readiness_check() -> Dict[str, Any]:
    """Ready once the facility registry is loaded."""
    registry = check_registry_health()
    return {
        "status": "ready" if registry.status == HealthStatus.HEALTHY else "not_ready",
        "timestamp": _timestamp(),
        "facility_registry": registry.status.value,
    }


async def get_detailed_status() -> Dict[str, Any]:
    """Health plus uptime, cache stats and configuration summary."""
    health = await perform_full_health_check()
    app_state = get_app_state()
    return {
        **health,
        "uptime_seconds": round(app_state.uptime_seconds, 2),
        "environment": settings.environment,
        "caches": get_all_cache_stats(),
        "config": {
            "rate_limit_enabled": settings.rate_limit_enabled,
            "cache_enabled": settings.cache_enabled,
            "kpi_parallel": settings.kpi_parallel,
            "kpi_timeout_seconds": settings.kpi_timeout_seconds,
            "reporting_lag_months": settings.reporting_lag_months,
        },
    }
