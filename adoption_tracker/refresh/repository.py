"""Database repository for refresh job rows.

Every transition is guarded by the expected source state in its WHERE
clause, so a terminal job can never be moved again.
"""

import logging
from typing import Any

from adoption_tracker.refresh.schemas import RefreshJob
from adoption_tracker.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS refresh_jobs (
    id             BIGSERIAL PRIMARY KEY,
    status         TEXT NOT NULL DEFAULT 'pending',
    trigger        TEXT NOT NULL DEFAULT 'manual',
    started_at     TIMESTAMPTZ,
    completed_at   TIMESTAMPTZ,
    projects_found INTEGER NOT NULL DEFAULT 0,
    error_message  TEXT NOT NULL DEFAULT '',
    created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_refresh_jobs_status ON refresh_jobs(status, completed_at DESC);
"""


def _row_to_job(row: Any) -> RefreshJob:
    return RefreshJob(
        id=row["id"],
        status=row["status"],
        trigger=row["trigger"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        projects_found=row["projects_found"],
        error_message=row["error_message"] or "",
        created_at=row["created_at"],
    )


class RefreshJobRepository:
    """Lifecycle writes and status reads for refresh jobs."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Refresh jobs table ensured")

    async def create(self, trigger: str = "manual") -> RefreshJob:
        """Insert a new job in ``pending``."""
        row = await self._db.fetchrow(
            "INSERT INTO refresh_jobs (status, trigger) VALUES ('pending', $1) RETURNING *",
            trigger,
        )
        return _row_to_job(row)

    async def mark_running(self, job_id: int) -> bool:
        result = await self._db.execute(
            """
            UPDATE refresh_jobs SET status = 'running', started_at = NOW()
            WHERE id = $1 AND status = 'pending'
            """,
            job_id,
        )
        return result.endswith(" 1")

    async def mark_completed(self, job_id: int, projects_found: int) -> bool:
        result = await self._db.execute(
            """
            UPDATE refresh_jobs
            SET status = 'completed', completed_at = NOW(), projects_found = $2
            WHERE id = $1 AND status = 'running'
            """,
            job_id,
            projects_found,
        )
        return result.endswith(" 1")

    async def mark_failed(self, job_id: int, error_message: str) -> bool:
        result = await self._db.execute(
            """
            UPDATE refresh_jobs
            SET status = 'failed', completed_at = NOW(), error_message = $2
            WHERE id = $1 AND status IN ('pending', 'running')
            """,
            job_id,
            error_message,
        )
        return result.endswith(" 1")

    async def get(self, job_id: int) -> RefreshJob | None:
        row = await self._db.fetchrow("SELECT * FROM refresh_jobs WHERE id = $1", job_id)
        return _row_to_job(row) if row else None

    async def get_latest(self) -> RefreshJob | None:
        row = await self._db.fetchrow("SELECT * FROM refresh_jobs ORDER BY id DESC LIMIT 1")
        return _row_to_job(row) if row else None

    async def get_running(self) -> RefreshJob | None:
        row = await self._db.fetchrow(
            "SELECT * FROM refresh_jobs WHERE status = 'running' ORDER BY id DESC LIMIT 1"
        )
        return _row_to_job(row) if row else None

    async def get_last_completed(self) -> RefreshJob | None:
        row = await self._db.fetchrow(
            """
            SELECT * FROM refresh_jobs
            WHERE status = 'completed'
            ORDER BY completed_at DESC LIMIT 1
            """
        )
        return _row_to_job(row) if row else None
