"""
Health check endpoints for monitoring system status

None of these touch AWS; they only report what the app was configured with.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
import structlog

from cloud_cost.models.schemas import HealthStatus, LivenessStatus

router = APIRouter()
logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.get("", response_model=HealthStatus)
@router.get("/", response_model=HealthStatus)
async def health_check(request: Request) -> HealthStatus:
    """Liveness plus a summary of the configured report pipeline"""
    report_service = getattr(request.app.state, "report_service", None)

    if report_service is None:
        return HealthStatus(status="starting", timestamp=_now(), accounts=0, auth_mode=None)

    return HealthStatus(
        status="ok",
        timestamp=_now(),
        accounts=len(report_service.accounts),
        auth_mode=report_service.authorizer.mode.value,
    )


@router.get("/liveness", response_model=LivenessStatus)
async def liveness_probe() -> LivenessStatus:
    """Kubernetes liveness probe endpoint"""
    return LivenessStatus(status="alive", timestamp=_now())


@router.get("/readiness")
async def readiness_probe(request: Request):
    """Kubernetes readiness probe endpoint"""
    ready = getattr(request.app.state, "report_service", None) is not None
    return {
        "status": "ready" if ready else "not_ready",
        "timestamp": _now().isoformat(),
    }
