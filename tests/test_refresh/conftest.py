"""Fixtures for refresh orchestration tests."""

import itertools
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from adoption_tracker.github.config import GitHubConfig
from adoption_tracker.github.schemas import RepoDetails, SearchHit
from adoption_tracker.notifications.dispatcher import DispatchResult
from adoption_tracker.projects.schemas import Project, Snapshot
from adoption_tracker.refresh.config import RefreshConfig
from adoption_tracker.refresh.orchestrator import RefreshOrchestrator
from adoption_tracker.refresh.schemas import RefreshJob

NOW = datetime(2024, 1, 16, 14, 30, tzinfo=timezone.utc)


def make_hit(name: str, path: str = "Dockerfile") -> SearchHit:
    return SearchHit(
        repo_full_name=name,
        repo_url=f"https://github.com/{name}",
        path=path,
        file_url=f"https://github.com/{name}/blob/main/{path}",
    )


def make_details(name: str, stars: int = 10) -> RepoDetails:
    return RepoDetails(
        full_name=name,
        url=f"https://github.com/{name}",
        stars=stars,
        description=f"{name} description",
        language="Python",
    )


@pytest.fixture
def mock_database():
    """Mock Database with the asyncpg-style query methods."""
    db = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=0)
    db.execute = AsyncMock(return_value="UPDATE 1")
    return db


@pytest.fixture
def mock_jobs():
    """Mock RefreshJobRepository handing out sequential job ids."""
    ids = itertools.count(1)
    jobs = AsyncMock()
    jobs.create = AsyncMock(side_effect=lambda trigger="manual": RefreshJob(id=next(ids), trigger=trigger))
    jobs.mark_running = AsyncMock(return_value=True)
    jobs.mark_completed = AsyncMock(return_value=True)
    jobs.mark_failed = AsyncMock(return_value=True)
    jobs.get_latest = AsyncMock(return_value=None)
    jobs.get_last_completed = AsyncMock(return_value=None)
    return jobs


@pytest.fixture
def mock_projects():
    """Mock ProjectRepository; upsert echoes the candidate back with an id."""
    projects = AsyncMock()
    projects.upsert = AsyncMock(side_effect=lambda p: p)
    projects.get_without_adoption_date = AsyncMock(return_value=[])
    projects.update_adoption = AsyncMock(return_value=True)
    projects.get_new_since = AsyncMock(return_value=[])
    projects.record_snapshot = AsyncMock(
        return_value=Snapshot(total_projects=3, total_stars=30, popular_count=0, notable_count=0)
    )
    return projects


@pytest.fixture
def mock_crawler():
    crawler = AsyncMock()
    crawler.crawl = AsyncMock(return_value={
        name: make_hit(name) for name in ("acme/a", "acme/b", "acme/c")
    })
    return crawler


@pytest.fixture
def mock_fetcher():
    fetcher = AsyncMock()
    fetcher.fetch_details = AsyncMock(side_effect=lambda name: make_details(name))
    return fetcher


@pytest.fixture
def mock_locator():
    return AsyncMock()


@pytest.fixture
def mock_dispatcher():
    dispatcher = AsyncMock()
    dispatcher.notify_new_projects = AsyncMock(return_value=DispatchResult())
    return dispatcher


@pytest.fixture
def mock_sleep():
    return AsyncMock()


@pytest.fixture
def make_orchestrator(
    mock_projects, mock_jobs, mock_crawler, mock_fetcher, mock_locator, mock_dispatcher, mock_sleep,
):
    """Factory for orchestrators wired to the mocks above."""

    def _make(**config_overrides) -> RefreshOrchestrator:
        return RefreshOrchestrator(
            projects=mock_projects,
            jobs=mock_jobs,
            crawler=mock_crawler,
            fetcher=mock_fetcher,
            locator=mock_locator,
            dispatcher=mock_dispatcher,
            config=RefreshConfig(**config_overrides),
            github_config=GitHubConfig(),
            sleep=mock_sleep,
            clock=lambda: NOW,
        )

    return _make


@pytest.fixture
def pending_project():
    """Factory for stored projects missing an adoption date."""

    def _make(project_id: int, name: str, stars: int = 10) -> Project:
        return Project(
            id=project_id,
            repo_full_name=name,
            github_url=f"https://github.com/{name}",
            stars=stars,
            dockerfile_path="Dockerfile",
        )

    return _make
