"""
Service descriptor, health probes and metrics.
"""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse

from api.health import (
    API_VERSION, get_detailed_status, perform_full_health_check, perform_liveness_check,
    perform_readiness_check,
)
from api.middleware import metrics_collector, get_request_id

router = APIRouter(tags=["System"])

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "health": "/api/health",
    "metrics": "/api/metrics",
    "facilities": "/api/facilities",
    "batch": "/api/batch",
    "kpis": "/api/kpis",
    "integrity": "/api/integrity",
}


@router.get("/")
async def root():
    return {
        "name": "Logistics KPI API",
        "version": API_VERSION,
        "status": "operational",
        "docs": "/api/docs",
        "endpoints": ENDPOINTS,
    }


@router.get("/api/health")
async def health_check():
    """
    Overall health: facility registry, held batch, Redis.

    No batch loaded reports "degraded", not "unhealthy": the service can
    still accept one.
    """
    result = await perform_full_health_check()
    result["request_id"] = get_request_id()
    return result


@router.get("/api/health/live")
async def liveness_check():
    return await perform_liveness_check()


@router.get("/api/health/ready")
async def readiness_check():
    """503 until the facility registry is loaded."""
    result = await perform_readiness_check()
    if result.get("status") != "ready":
        raise HTTPException(status_code=503, detail="Facility registry not loaded")
    return result


@router.get("/api/status")
async def detailed_status():
    return await get_detailed_status()


@router.get("/api/metrics", response_class=PlainTextResponse)
async def prometheus_metrics():
    """Request and engine metrics in Prometheus text format."""
    return metrics_collector.get_prometheus_metrics()


@router.get("/api/metrics/json")
async def json_metrics():
    return metrics_collector.get_metrics()
