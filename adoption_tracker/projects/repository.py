"""Database repository for projects and refresh snapshots."""

import logging
from datetime import datetime
from typing import Any

from adoption_tracker.projects.schemas import (
    NOTABLE_THRESHOLD,
    POPULAR_THRESHOLD,
    AdoptionByDate,
    Project,
    ProjectFilter,
    ProjectStats,
    Snapshot,
)
from adoption_tracker.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id               BIGSERIAL PRIMARY KEY,
    repo_full_name   TEXT NOT NULL UNIQUE,
    github_url       TEXT NOT NULL,
    stars            INTEGER NOT NULL DEFAULT 0,
    description      TEXT NOT NULL DEFAULT '',
    primary_language TEXT NOT NULL DEFAULT '',
    dockerfile_path  TEXT NOT NULL DEFAULT '',
    file_url         TEXT NOT NULL DEFAULT '',
    source_type      TEXT NOT NULL DEFAULT '',
    adopted_at       TIMESTAMPTZ,
    adoption_commit  TEXT NOT NULL DEFAULT '',
    first_seen_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_seen_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_projects_stars ON projects(stars DESC);
CREATE INDEX IF NOT EXISTS idx_projects_first_seen ON projects(first_seen_at DESC);
CREATE INDEX IF NOT EXISTS idx_projects_adopted ON projects(adopted_at DESC);
CREATE INDEX IF NOT EXISTS idx_projects_source_type ON projects(source_type);

CREATE TABLE IF NOT EXISTS refresh_snapshots (
    id             BIGSERIAL PRIMARY KEY,
    recorded_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    total_projects INTEGER NOT NULL,
    total_stars    BIGINT NOT NULL,
    popular_count  INTEGER NOT NULL,
    notable_count  INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_snapshots_recorded ON refresh_snapshots(recorded_at DESC);
"""

# adopted_at and adoption_commit move together and only while unset.
_UPSERT_SQL = """
INSERT INTO projects (
    repo_full_name, github_url, stars, description, primary_language,
    dockerfile_path, file_url, source_type, adopted_at, adoption_commit
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
ON CONFLICT (repo_full_name) DO UPDATE SET
    github_url = EXCLUDED.github_url,
    stars = EXCLUDED.stars,
    description = EXCLUDED.description,
    primary_language = EXCLUDED.primary_language,
    dockerfile_path = EXCLUDED.dockerfile_path,
    file_url = EXCLUDED.file_url,
    source_type = EXCLUDED.source_type,
    adopted_at = COALESCE(projects.adopted_at, EXCLUDED.adopted_at),
    adoption_commit = CASE
        WHEN projects.adopted_at IS NULL THEN EXCLUDED.adoption_commit
        ELSE projects.adoption_commit
    END,
    last_seen_at = NOW(),
    updated_at = NOW()
RETURNING *
"""

_STATS_SQL = f"""
SELECT
    COUNT(*) AS total_projects,
    COALESCE(SUM(stars), 0) AS total_stars,
    COUNT(*) FILTER (WHERE stars >= {POPULAR_THRESHOLD}) AS popular_count,
    COUNT(*) FILTER (
        WHERE stars >= {NOTABLE_THRESHOLD} AND stars < {POPULAR_THRESHOLD}
    ) AS notable_count
FROM projects
"""

_RECORD_SNAPSHOT_SQL = f"""
INSERT INTO refresh_snapshots (total_projects, total_stars, popular_count, notable_count)
{_STATS_SQL}
RETURNING *
"""

# Running totals are computed over all history, then trimmed to the window.
_ADOPTION_BY_DATE_SQL = """
WITH daily AS (
    SELECT
        (adopted_at AT TIME ZONE 'UTC')::date AS day,
        COUNT(*) AS count,
        COALESCE(SUM(stars), 0) AS stars
    FROM projects
    WHERE adopted_at IS NOT NULL
    GROUP BY 1
), running AS (
    SELECT
        day,
        count,
        SUM(count) OVER (ORDER BY day)::bigint AS cumulative_count,
        SUM(stars) OVER (ORDER BY day)::bigint AS cumulative_stars
    FROM daily
)
SELECT day, count, cumulative_count, cumulative_stars
FROM running
WHERE day >= (NOW() AT TIME ZONE 'UTC')::date - $1::int
ORDER BY day
"""

_SORT_COLUMNS = {
    "stars": "stars",
    "name": "repo_full_name",
    "first_seen": "first_seen_at",
    "adopted": "adopted_at",
}


def _row_to_project(row: Any) -> Project:
    """Convert an asyncpg Record to a Project dataclass."""
    return Project(
        id=row["id"],
        repo_full_name=row["repo_full_name"],
        github_url=row["github_url"],
        stars=row["stars"],
        description=row["description"],
        primary_language=row["primary_language"],
        dockerfile_path=row["dockerfile_path"],
        file_url=row["file_url"],
        source_type=row["source_type"],
        adopted_at=row["adopted_at"],
        adoption_commit=row["adoption_commit"],
        first_seen_at=row["first_seen_at"],
        last_seen_at=row["last_seen_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_snapshot(row: Any) -> Snapshot:
    return Snapshot(
        id=row["id"],
        recorded_at=row["recorded_at"],
        total_projects=row["total_projects"],
        total_stars=row["total_stars"],
        popular_count=row["popular_count"],
        notable_count=row["notable_count"],
    )


class ProjectRepository:
    """Persistence for tracked projects and their aggregate snapshots."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create the projects and snapshots tables (idempotent)."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Projects tables ensured")

    async def upsert(self, project: Project) -> Project:
        """Insert or merge a project by ``repo_full_name``.

        Scan fields are overwritten. ``adopted_at`` keeps any existing value,
        ``first_seen_at`` is only set on insert, ``last_seen_at`` is bumped.
        """
        row = await self._db.fetchrow(
            _UPSERT_SQL,
            project.repo_full_name,
            project.github_url,
            project.stars,
            project.description,
            project.primary_language,
            project.dockerfile_path,
            project.file_url,
            project.source_type,
            project.adopted_at,
            project.adoption_commit,
        )
        return _row_to_project(row)

    async def get_by_name(self, repo_full_name: str) -> Project | None:
        row = await self._db.fetchrow(
            "SELECT * FROM projects WHERE repo_full_name = $1", repo_full_name,
        )
        return _row_to_project(row) if row else None

    async def list_projects(
        self, project_filter: ProjectFilter | None = None,
    ) -> tuple[list[Project], int]:
        """Filtered, sorted, paginated list. Returns (projects, total)."""
        f = project_filter or ProjectFilter()
        conditions: list[str] = []
        params: list[Any] = []
        idx = 1

        if f.min_stars is not None:
            conditions.append(f"stars >= ${idx}")
            params.append(f.min_stars)
            idx += 1

        if f.max_stars is not None:
            conditions.append(f"stars <= ${idx}")
            params.append(f.max_stars)
            idx += 1

        if f.search:
            conditions.append(
                f"(repo_full_name ILIKE ${idx} OR description ILIKE ${idx})"
            )
            params.append(f"%{f.search}%")
            idx += 1

        if f.source_type:
            conditions.append(f"source_type = ${idx}")
            params.append(f.source_type)
            idx += 1

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""

        total = await self._db.fetchval(
            f"SELECT COUNT(*) FROM projects{where_clause}", *params,
        )

        sort_col = _SORT_COLUMNS[f.sort_by]
        direction = "ASC" if f.order == "asc" else "DESC"
        data_sql = f"""
            SELECT * FROM projects{where_clause}
            ORDER BY {sort_col} {direction} NULLS LAST, id
            LIMIT ${idx} OFFSET ${idx + 1}
        """
        params.extend([f.limit, f.offset])
        rows = await self._db.fetch(data_sql, *params)

        return [_row_to_project(r) for r in rows], total or 0

    async def get_source_types(self) -> list[str]:
        """Distinct non-empty source classifications."""
        rows = await self._db.fetch(
            "SELECT DISTINCT source_type FROM projects "
            "WHERE source_type <> '' ORDER BY source_type"
        )
        return [r["source_type"] for r in rows]

    async def get_stats(self) -> ProjectStats:
        row = await self._db.fetchrow(_STATS_SQL)
        if row is None:
            return ProjectStats()
        return ProjectStats(
            total_projects=row["total_projects"],
            total_stars=row["total_stars"],
            popular_count=row["popular_count"],
            notable_count=row["notable_count"],
        )

    async def get_new_since(self, since: datetime) -> list[Project]:
        """Projects adopted at or after ``since``, newest first."""
        rows = await self._db.fetch(
            """
            SELECT * FROM projects
            WHERE adopted_at IS NOT NULL AND adopted_at >= $1
            ORDER BY adopted_at DESC
            """,
            since,
        )
        return [_row_to_project(r) for r in rows]

    async def count_new_since(self, since: datetime) -> int:
        count = await self._db.fetchval(
            "SELECT COUNT(*) FROM projects WHERE adopted_at IS NOT NULL AND adopted_at >= $1",
            since,
        )
        return count or 0

    async def get_without_adoption_date(self) -> list[Project]:
        """Projects still waiting for an adoption date, most-starred first."""
        rows = await self._db.fetch(
            "SELECT * FROM projects WHERE adopted_at IS NULL ORDER BY stars DESC, id"
        )
        return [_row_to_project(r) for r in rows]

    async def update_adoption(
        self, project_id: int, adopted_at: datetime, commit_url: str,
    ) -> bool:
        """Set the adoption date if it is still unset. Returns True if a row changed."""
        result = await self._db.execute(
            """
            UPDATE projects
            SET adopted_at = $1, adoption_commit = $2, updated_at = NOW()
            WHERE id = $3 AND adopted_at IS NULL
            """,
            adopted_at, commit_url, project_id,
        )
        return result.endswith(" 1")

    async def get_adoption_by_date(self, days: int = 14) -> list[AdoptionByDate]:
        """Daily adoption counts for the last ``days`` days with running totals."""
        rows = await self._db.fetch(_ADOPTION_BY_DATE_SQL, days)
        return [
            AdoptionByDate(
                date=r["day"],
                count=r["count"],
                cumulative_count=r["cumulative_count"],
                cumulative_stars=r["cumulative_stars"],
            )
            for r in rows
        ]

    async def record_snapshot(self) -> Snapshot:
        """Append a snapshot of the current aggregates."""
        row = await self._db.fetchrow(_RECORD_SNAPSHOT_SQL)
        return _row_to_snapshot(row)

    async def get_snapshots(self, limit: int = 30) -> list[Snapshot]:
        """Most recent snapshots first."""
        rows = await self._db.fetch(
            "SELECT * FROM refresh_snapshots ORDER BY recorded_at DESC LIMIT $1",
            limit,
        )
        return [_row_to_snapshot(r) for r in rows]
