"""Fixtures for GitHub crawler and lookup tests."""

from unittest.mock import AsyncMock

import pytest

from adoption_tracker.github.config import GitHubConfig
from adoption_tracker.github.schemas import SearchHit, SearchPage


def make_page(names: list[str], total_count: int, path: str = "Dockerfile") -> SearchPage:
    """Build a search page with one hit per repository name."""
    return SearchPage(
        total_count=total_count,
        hits=[
            SearchHit(
                repo_full_name=name,
                repo_url=f"https://github.com/{name}",
                path=path,
                file_url=f"https://github.com/{name}/blob/main/{path}",
            )
            for name in names
        ],
    )


@pytest.fixture
def github_config() -> GitHubConfig:
    """Small pages so pagination is easy to exercise."""
    return GitHubConfig(
        per_page=2,
        max_pages=10,
        search_delay_seconds=6.0,
        search_backoff_seconds=60.0,
        detail_backoff_seconds=60.0,
    )


@pytest.fixture
def mock_github_client():
    """Mock GitHubClient."""
    client = AsyncMock()
    client.search_code = AsyncMock()
    client.get_repo = AsyncMock()
    client.get_first_commit = AsyncMock()
    return client


@pytest.fixture
def mock_sleep():
    return AsyncMock()


@pytest.fixture
def page_factory():
    """Factory for SearchPage objects."""
    return make_page
