"""Refresh trigger and status endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from adoption_tracker.api.auth import verify_api_key
from adoption_tracker.api.dependencies import get_orchestrator
from adoption_tracker.api.models import (
    ErrorResponse,
    RefreshJobItem,
    RefreshStartResponse,
    RefreshStatusResponse,
)
from adoption_tracker.refresh.orchestrator import RefreshOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/api/refresh",
    response_model=RefreshStartResponse,
    responses={
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse, "description": "Job could not be created"},
    },
    summary="Start a refresh",
    description=(
        "Starts a background refresh and returns immediately. If one is "
        "already running, returns success=false without starting another."
    ),
)
async def start_refresh(
    api_key: str = Depends(verify_api_key),
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),
) -> RefreshStartResponse:
    try:
        result = await orchestrator.start_refresh("manual")
    except Exception as e:
        logger.error(f"Failed to start refresh: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to start refresh: {str(e)}",
        )

    return RefreshStartResponse(
        success=result.started,
        job_id=result.job_id,
        message=result.message,
    )


@router.get(
    "/api/refresh/status",
    response_model=RefreshStatusResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Refresh status",
)
async def refresh_status(
    api_key: str = Depends(verify_api_key),
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),
) -> RefreshStatusResponse:
    current = await orchestrator.refresh_status()
    return RefreshStatusResponse(
        is_running=current.is_running,
        last_job=RefreshJobItem(**current.last_job.to_dict()) if current.last_job else None,
        next_refresh=current.next_refresh.isoformat() if current.next_refresh else None,
    )
