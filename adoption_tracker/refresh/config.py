"""Configuration for refresh runs."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RefreshConfig(BaseSettings):
    """Settings for the refresh orchestrator."""

    model_config = SettingsConfigDict(
        env_prefix="REFRESH_",
        case_sensitive=False,
        extra="ignore",
    )

    timeout_seconds: float = Field(
        default=600.0,
        gt=0.0,
        description="Overall deadline for one run, measured from job start",
    )
    snapshot_enabled: bool = Field(
        default=True,
        description="Record an aggregate snapshot at the end of each run",
    )
    scheduler_poll_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="How often the scheduler loop checks for due jobs",
    )
