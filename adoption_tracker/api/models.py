"""
Pydantic models for API requests and responses.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response."""

    detail: str = Field(..., description="Error message")
    error_type: str = Field(default="error", description="Error category")


# ── Health ─────────────────────────────────


class ComponentHealth(BaseModel):
    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None)
    details: dict[str, Any] | None = Field(default=None)


class HealthResponse(BaseModel):
    """Service health."""

    status: str = Field(..., description="healthy, degraded or unhealthy")
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    refresh_running: bool = Field(default=False, description="A refresh holds the guard")
    last_refresh: str | None = Field(default=None, description="Completion time of last successful refresh")
    next_refresh: str | None = Field(default=None, description="Next scheduled refresh (UTC)")
    github_configured: bool = Field(default=False)
    smtp_configured: bool = Field(default=False)


# ── Projects ─────────────────────────────────


class ProjectItem(BaseModel):
    id: int | None = None
    repo_full_name: str
    github_url: str
    stars: int
    description: str = ""
    primary_language: str = ""
    dockerfile_path: str = ""
    file_url: str = ""
    source_type: str = ""
    adopted_at: str | None = None
    adoption_commit: str = ""
    first_seen_at: str | None = None
    last_seen_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class ProjectsResponse(BaseModel):
    projects: list[ProjectItem]
    total: int = Field(..., description="Matches before limit/offset")
    limit: int
    offset: int
    latency_ms: float = 0.0


class NewProjectsResponse(BaseModel):
    projects: list[ProjectItem]
    count: int
    since: str = Field(..., description="Window start (UTC)")


class StatsResponse(BaseModel):
    total_projects: int
    total_stars: int
    popular_count: int = Field(..., description="Projects with 1000+ stars")
    notable_count: int = Field(..., description="Projects with 100-999 stars")
    new_this_week: int = Field(..., description="Adopted since Monday 00:00 UTC")


class SourceTypesResponse(BaseModel):
    source_types: list[str]


class HistoryPoint(BaseModel):
    date: str
    count: int
    cumulative_count: int
    cumulative_stars: int


class HistoryResponse(BaseModel):
    days: int
    history: list[HistoryPoint]


class SnapshotItem(BaseModel):
    id: int | None = None
    recorded_at: str | None = None
    total_projects: int
    total_stars: int
    popular_count: int
    notable_count: int


class SnapshotsResponse(BaseModel):
    snapshots: list[SnapshotItem]


# ── Refresh ─────────────────────────────────


class RefreshStartResponse(BaseModel):
    success: bool = Field(..., description="True if a new run was started")
    job_id: int | None = Field(default=None)
    message: str


class RefreshJobItem(BaseModel):
    id: int
    status: str
    trigger: str
    started_at: str | None = None
    completed_at: str | None = None
    projects_found: int = 0
    error_message: str = ""
    created_at: str | None = None


class RefreshStatusResponse(BaseModel):
    is_running: bool
    last_job: RefreshJobItem | None = None
    next_refresh: str | None = None


# ── Notifications ─────────────────────────────────


class NotificationConfigItem(BaseModel):
    id: int | None = None
    name: str
    type: str
    enabled: bool
    config: dict[str, Any]
    last_triggered_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class NotificationConfigsResponse(BaseModel):
    configs: list[NotificationConfigItem]
    total: int


class CreateNotificationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., description="chat or email")
    enabled: bool = Field(default=True)
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Channel payload: webhook_url for chat, to (and optional from) for email",
    )


class UpdateNotificationRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: str | None = None
    enabled: bool | None = None
    config: dict[str, Any] | None = None


class NotificationLogItem(BaseModel):
    id: int | None = None
    config_id: int
    project_id: int | None = None
    status: str
    error_message: str = ""
    sent_at: str | None = None


class NotificationLogsResponse(BaseModel):
    logs: list[NotificationLogItem]
    total: int


class NotificationTestResponse(BaseModel):
    success: bool
    message: str
