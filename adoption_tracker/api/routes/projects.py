"""Read endpoints for tracked projects, aggregates, history, and snapshots."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from adoption_tracker.api.auth import verify_api_key
from adoption_tracker.api.dependencies import get_project_repository
from adoption_tracker.api.models import (
    ErrorResponse,
    HistoryPoint,
    HistoryResponse,
    NewProjectsResponse,
    ProjectItem,
    ProjectsResponse,
    SnapshotItem,
    SnapshotsResponse,
    SourceTypesResponse,
    StatsResponse,
)
from adoption_tracker.projects.repository import ProjectRepository
from adoption_tracker.projects.schemas import ProjectFilter
from adoption_tracker.refresh.windows import resolve_since, start_of_week

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/api/projects",
    response_model=ProjectsResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Invalid filter parameter"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="List tracked projects",
)
async def list_projects(
    min_stars: int | None = Query(default=None, ge=0),
    max_stars: int | None = Query(default=None, ge=0),
    search: str | None = Query(default=None, description="Substring of name or description"),
    source_type: str | None = Query(default=None, description="dockerfile, compose, github-actions, manifest, other"),
    sort_by: str = Query(default="stars", description="stars, name, first_seen, adopted"),
    order: str = Query(default="desc", description="asc or desc"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    api_key: str = Depends(verify_api_key),
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectsResponse:
    start_time = time.perf_counter()

    try:
        project_filter = ProjectFilter(
            min_stars=min_stars,
            max_stars=max_stars,
            search=search,
            source_type=source_type,
            sort_by=sort_by,
            order=order,
            limit=limit,
            offset=offset,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    try:
        projects, total = await repo.list_projects(project_filter)
    except Exception as e:
        logger.error(f"Failed to list projects: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list projects: {str(e)}",
        )

    latency_ms = (time.perf_counter() - start_time) * 1000
    return ProjectsResponse(
        projects=[ProjectItem(**p.to_dict()) for p in projects],
        total=total,
        limit=limit,
        offset=offset,
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/api/projects/new",
    response_model=NewProjectsResponse,
    responses={401: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
    summary="Projects adopted within a window",
    description="Window is 'thisweek' (default) or a duration such as 7d, 2w, 12h.",
)
async def new_projects(
    since: str = Query(default="thisweek"),
    api_key: str = Depends(verify_api_key),
    repo: ProjectRepository = Depends(get_project_repository),
) -> NewProjectsResponse:
    try:
        since_at = resolve_since(since)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    projects = await repo.get_new_since(since_at)
    return NewProjectsResponse(
        projects=[ProjectItem(**p.to_dict()) for p in projects],
        count=len(projects),
        since=since_at.isoformat(),
    )


@router.get(
    "/api/stats",
    response_model=StatsResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Aggregate counts",
)
async def stats(
    api_key: str = Depends(verify_api_key),
    repo: ProjectRepository = Depends(get_project_repository),
) -> StatsResponse:
    result = await repo.get_stats()
    new_this_week = await repo.count_new_since(start_of_week())
    return StatsResponse(
        total_projects=result.total_projects,
        total_stars=result.total_stars,
        popular_count=result.popular_count,
        notable_count=result.notable_count,
        new_this_week=new_this_week,
    )


@router.get(
    "/api/source-types",
    response_model=SourceTypesResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Distinct source types",
)
async def source_types(
    api_key: str = Depends(verify_api_key),
    repo: ProjectRepository = Depends(get_project_repository),
) -> SourceTypesResponse:
    return SourceTypesResponse(source_types=await repo.get_source_types())


@router.get(
    "/api/history",
    response_model=HistoryResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Daily adoptions with running totals",
)
async def history(
    days: int = Query(default=14, ge=1, le=365),
    api_key: str = Depends(verify_api_key),
    repo: ProjectRepository = Depends(get_project_repository),
) -> HistoryResponse:
    rows = await repo.get_adoption_by_date(days)
    return HistoryResponse(
        days=days,
        history=[
            HistoryPoint(
                date=r.date.isoformat(),
                count=r.count,
                cumulative_count=r.cumulative_count,
                cumulative_stars=r.cumulative_stars,
            )
            for r in rows
        ],
    )


@router.get(
    "/api/snapshots",
    response_model=SnapshotsResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Recent refresh snapshots, newest first",
)
async def snapshots(
    limit: int = Query(default=30, ge=1, le=500),
    api_key: str = Depends(verify_api_key),
    repo: ProjectRepository = Depends(get_project_repository),
) -> SnapshotsResponse:
    rows = await repo.get_snapshots(limit)
    return SnapshotsResponse(snapshots=[SnapshotItem(**s.to_dict()) for s in rows])
