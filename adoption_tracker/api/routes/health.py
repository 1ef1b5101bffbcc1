"""
Health check endpoint.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from adoption_tracker.api.dependencies import get_database, get_orchestrator
from adoption_tracker.api.models import ComponentHealth, HealthResponse
from adoption_tracker.config.settings import get_settings
from adoption_tracker.refresh.orchestrator import RefreshOrchestrator
from adoption_tracker.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the database and report refresh state.",
)
async def health_check(
    db: Database = Depends(get_database),
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    """
    Status logic:
    - unhealthy: database is down
    - degraded: no GitHub token (code search will be rejected)
    - healthy: otherwise
    """
    settings = get_settings()
    components = {"database": await _check_database(db)}

    last_refresh = None
    next_refresh = None
    if components["database"].status == "healthy":
        try:
            last = await orchestrator.last_refresh_time()
            last_refresh = last.isoformat() if last else None
            status_info = await orchestrator.refresh_status()
            if status_info.next_refresh:
                next_refresh = status_info.next_refresh.isoformat()
        except Exception as e:
            logger.warning("Could not read refresh state", error=str(e))

    if components["database"].status == "unhealthy":
        status = "unhealthy"
    elif not settings.github_configured:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        components=components,
        refresh_running=orchestrator.is_running,
        last_refresh=last_refresh,
        next_refresh=next_refresh,
        github_configured=settings.github_configured,
        smtp_configured=settings.smtp_configured,
    )
