"""Data models for GitHub API responses."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class SearchHit:
    """One code-search match, reduced to the fields the tracker keeps."""

    repo_full_name: str
    repo_url: str
    path: str
    file_url: str = ""


@dataclass
class SearchPage:
    """A single page of code-search results."""

    total_count: int
    hits: list[SearchHit] = field(default_factory=list)
    incomplete_results: bool = False


@dataclass
class RepoDetails:
    """Repository metadata from ``GET /repos/{owner}/{repo}``."""

    full_name: str
    url: str
    stars: int = 0
    description: str = ""
    language: str = ""


@dataclass
class AdoptionInfo:
    """Earliest commit touching the matched file."""

    date: datetime
    commit_url: str
