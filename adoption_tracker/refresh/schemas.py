"""Schema definitions for refresh jobs and run results.

A refresh job moves ``pending -> running -> completed | failed`` and is
never reopened once terminal.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

JobStatus = Literal["pending", "running", "completed", "failed"]

JOB_PENDING = "pending"
JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

VALID_JOB_STATUSES: frozenset[str] = frozenset({
    JOB_PENDING,
    JOB_RUNNING,
    JOB_COMPLETED,
    JOB_FAILED,
})
TERMINAL_JOB_STATUSES: frozenset[str] = frozenset({JOB_COMPLETED, JOB_FAILED})

VALID_TRIGGERS: frozenset[str] = frozenset({"manual", "scheduled", "startup", "cli"})


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class RefreshJob:
    """A persisted refresh job row.

    Attributes:
        id: Serial job id.
        status: pending, running, completed, or failed.
        trigger: What started the run (manual, scheduled, startup, cli).
        started_at: Set on transition to running.
        completed_at: Set on the terminal transition.
        projects_found: Successful upserts (completed jobs only).
        error_message: Failure detail (failed jobs only).
    """

    id: int
    status: str = JOB_PENDING
    trigger: str = "manual"
    started_at: datetime | None = None
    completed_at: datetime | None = None
    projects_found: int = 0
    error_message: str = ""
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.status not in VALID_JOB_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_JOB_STATUSES)}"
            )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "trigger": self.trigger,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "projects_found": self.projects_found,
            "error_message": self.error_message,
            "created_at": _iso(self.created_at),
        }


@dataclass
class StartResult:
    """Outcome of asking for a refresh."""

    started: bool
    message: str
    job_id: int | None = None


@dataclass
class RefreshStatus:
    """Current guard state, most recent job, and next scheduled run."""

    is_running: bool
    last_job: RefreshJob | None = None
    next_refresh: datetime | None = None


@dataclass
class RefreshRunResult:
    """Summary of one refresh run."""

    job_id: int
    trigger: str
    status: str = JOB_RUNNING
    repos_discovered: int = 0
    details_failed: int = 0
    projects_upserted: int = 0
    upserts_failed: int = 0
    adoptions_set: int = 0
    adoptions_skipped: int = 0
    projects_notified: int = 0
    snapshot_recorded: bool = False
    errors: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def job_completed(self) -> bool:
        return self.status == JOB_COMPLETED
