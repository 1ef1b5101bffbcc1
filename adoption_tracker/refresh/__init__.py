"""Refresh orchestration: job lifecycle, single-flight runner, scheduling."""

from adoption_tracker.refresh.config import RefreshConfig
from adoption_tracker.refresh.guard import SingleFlightGuard
from adoption_tracker.refresh.orchestrator import RefreshOrchestrator, build_orchestrator
from adoption_tracker.refresh.repository import RefreshJobRepository
from adoption_tracker.refresh.scheduler import RefreshScheduler
from adoption_tracker.refresh.schemas import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PENDING,
    JOB_RUNNING,
    RefreshJob,
    RefreshRunResult,
    RefreshStatus,
    StartResult,
)
from adoption_tracker.refresh.windows import THIS_WEEK, parse_duration, resolve_since, start_of_week

__all__ = [
    "JOB_COMPLETED",
    "JOB_FAILED",
    "JOB_PENDING",
    "JOB_RUNNING",
    "RefreshConfig",
    "RefreshJob",
    "RefreshJobRepository",
    "RefreshOrchestrator",
    "RefreshRunResult",
    "RefreshScheduler",
    "RefreshStatus",
    "SingleFlightGuard",
    "StartResult",
    "THIS_WEEK",
    "build_orchestrator",
    "parse_duration",
    "resolve_since",
    "start_of_week",
]
