"""
Health Check Module
===================
Health endpoints with delivery provider and quota component status.
"""

import time
from typing import Awaitable, Callable, Dict, Optional
from enum import Enum

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .delivery import DeliveryOrchestrator, ProviderKind
from .quota import QuotaMonitor

logger = structlog.get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


async def check_providers(orchestrator: DeliveryOrchestrator) -> Dict[str, ComponentHealth]:
    """Health of each configured delivery provider."""
    components: Dict[str, ComponentHealth] = {}
    start = time.time()
    report = await orchestrator.health()
    latency = round((time.time() - start) * 1000, 2)
    for name, entry in report.items():
        if not entry["configured"]:
            status = "not_configured"
        elif entry["circuit"]["state"] == "open":
            status = "circuit_open"
        elif entry["healthy"]:
            status = "connected"
        else:
            status = "error"
        components[f"provider:{name}"] = ComponentHealth(status=status, latency_ms=latency)
    return components


def check_quota(quota: QuotaMonitor) -> ComponentHealth:
    stats = quota.statistics()
    if quota.global_exhausted():
        return ComponentHealth(status="exhausted")
    return ComponentHealth(status="at_risk" if stats["at_risk"] else "ok")


def create_health_router(
    service_name: str,
    version: str = "1.0.0",
    orchestrator: Optional[DeliveryOrchestrator] = None,
    quota: Optional[QuotaMonitor] = None,
    custom_checks: Optional[Dict[str, Callable[[], Awaitable[ComponentHealth]]]] = None,
) -> APIRouter:
    """
    Create a health check router.

    Args:
        service_name: Name of the service (e.g., "easymed-auth")
        version: Service version
        orchestrator: Delivery orchestrator whose providers are reported
        quota: Quota monitor whose global budget is reported
        custom_checks: Dict of custom health check functions (optional)

    Returns:
        FastAPI router with /health, /health/live, and /health/ready endpoints
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check with all component statuses."""
        components: Dict[str, ComponentHealth] = {}
        overall_status = HealthStatus.HEALTHY

        if orchestrator is not None:
            components.update(await check_providers(orchestrator))
            real = [
                c for name, c in components.items()
                if not name.endswith(ProviderKind.LOCAL_DEMO.value) and c.status != "not_configured"
            ]
            # only the local demo adapter is left to deliver
            if real and all(c.status != "connected" for c in real):
                overall_status = HealthStatus.DEGRADED

        if quota is not None:
            components["quota"] = check_quota(quota)
            if components["quota"].status == "exhausted" and overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        if custom_checks:
            for name, check_fn in custom_checks.items():
                try:
                    components[name] = await check_fn()
                except Exception as e:
                    logger.error("Health check failed", component=name, error=str(e))
                    components[name] = ComponentHealth(status="error", error=str(e))

        return HealthResponse(
            status=overall_status,
            service=service_name,
            version=version,
            components=components,
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def liveness_probe():
        """Kubernetes liveness probe - always returns 200 if service is running."""
        return {"status": "alive"}

    @router.get("/health/ready")
    async def readiness_probe():
        """Ready while at least one provider can deliver."""
        if orchestrator is not None:
            report = await orchestrator.health()
            if not any(entry["healthy"] for entry in report.values()):
                return JSONResponse(
                    content={"status": "not_ready", "reason": "no_delivery_provider"},
                    status_code=503,
                )
        return {"status": "ready"}

    return router
