"""Configuration for GitHub search and detail lookups."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GitHubConfig(BaseSettings):
    """Search query, pagination limits, and the rate-limit pacing for each endpoint."""

    model_config = SettingsConfigDict(
        env_prefix="GITHUB_",
        case_sensitive=False,
        extra="ignore",
    )

    search_query: str = Field(
        default='"dhi.io" language:Dockerfile',
        description="Code search query identifying an adoption",
    )
    per_page: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Search results per page",
    )
    max_pages: int = Field(
        default=10,
        ge=1,
        description="Page ceiling; code search stops returning results after 1000 hits",
    )
    search_delay_seconds: float = Field(
        default=6.0,
        ge=0.0,
        description="Sleep between search pages (code search allows 10 requests/minute)",
    )
    search_backoff_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Sleep before retrying a rate-limited search page",
    )
    detail_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Sleep after each repository detail fetch",
    )
    detail_backoff_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Sleep before the single retry of a rate-limited detail or commit lookup",
    )
    adoption_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Sleep between adoption-date lookups during backfill",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Per-request HTTP timeout",
    )
