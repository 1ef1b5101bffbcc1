"""Data models for tracked projects, aggregates, and snapshots.

A project is one GitHub repository whose files reference the tracked
registry. ``adopted_at`` is written once: a rescan never replaces a
known adoption date.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

POPULAR_THRESHOLD = 1000
NOTABLE_THRESHOLD = 100

VALID_SORT_FIELDS: frozenset[str] = frozenset({"stars", "name", "first_seen", "adopted"})
VALID_SORT_ORDERS: frozenset[str] = frozenset({"asc", "desc"})


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Project:
    """A tracked repository.

    Attributes:
        repo_full_name: ``owner/name``, unique.
        github_url: Repository web URL.
        stars: Stargazer count from the most recent scan.
        description: Repository description.
        primary_language: GitHub's detected language.
        dockerfile_path: Path of the file that matched the search.
        file_url: Web URL of that file.
        source_type: Classification of the matched file (see classification.py).
        adopted_at: Date of the earliest commit touching the matched file.
        adoption_commit: Web URL of that commit.
    """

    repo_full_name: str
    github_url: str
    stars: int = 0
    description: str = ""
    primary_language: str = ""
    dockerfile_path: str = ""
    file_url: str = ""
    source_type: str = ""
    adopted_at: datetime | None = None
    adoption_commit: str = ""
    id: int | None = None
    first_seen_at: datetime | None = None
    last_seen_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def tier(self) -> str:
        if self.stars >= POPULAR_THRESHOLD:
            return "popular"
        if self.stars >= NOTABLE_THRESHOLD:
            return "notable"
        return "other"

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "repo_full_name": self.repo_full_name,
            "github_url": self.github_url,
            "stars": self.stars,
            "description": self.description,
            "primary_language": self.primary_language,
            "dockerfile_path": self.dockerfile_path,
            "file_url": self.file_url,
            "source_type": self.source_type,
            "adopted_at": _iso(self.adopted_at),
            "adoption_commit": self.adoption_commit,
            "first_seen_at": _iso(self.first_seen_at),
            "last_seen_at": _iso(self.last_seen_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class ProjectFilter:
    """Filter, sort, and pagination options for listing projects."""

    min_stars: int | None = None
    max_stars: int | None = None
    search: str | None = None
    source_type: str | None = None
    sort_by: str = "stars"
    order: str = "desc"
    limit: int = 100
    offset: int = 0

    def __post_init__(self) -> None:
        if self.sort_by not in VALID_SORT_FIELDS:
            raise ValueError(
                f"Invalid sort_by {self.sort_by!r}. "
                f"Must be one of: {sorted(VALID_SORT_FIELDS)}"
            )
        if self.order not in VALID_SORT_ORDERS:
            raise ValueError(
                f"Invalid order {self.order!r}. "
                f"Must be one of: {sorted(VALID_SORT_ORDERS)}"
            )


@dataclass
class ProjectStats:
    """Aggregate counts over all tracked projects."""

    total_projects: int = 0
    total_stars: int = 0
    popular_count: int = 0
    notable_count: int = 0
    new_this_week: int = 0


@dataclass
class AdoptionByDate:
    """Adoptions on one UTC day with running totals up to that day."""

    date: date
    count: int
    cumulative_count: int
    cumulative_stars: int


@dataclass
class Snapshot:
    """Immutable aggregate row recorded after each refresh."""

    total_projects: int
    total_stars: int
    popular_count: int
    notable_count: int
    id: int | None = None
    recorded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recorded_at": _iso(self.recorded_at),
            "total_projects": self.total_projects,
            "total_stars": self.total_stars,
            "popular_count": self.popular_count,
            "notable_count": self.notable_count,
        }
