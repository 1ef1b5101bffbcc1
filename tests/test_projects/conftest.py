"""Fixtures for project store tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest


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
def project_row():
    """Factory for project rows as returned by asyncpg."""

    def _make(**overrides):
        row = {
            "id": 1,
            "repo_full_name": "acme/widget",
            "github_url": "https://github.com/acme/widget",
            "stars": 150,
            "description": "Widgets",
            "primary_language": "Go",
            "dockerfile_path": "Dockerfile",
            "file_url": "https://github.com/acme/widget/blob/main/Dockerfile",
            "source_type": "dockerfile",
            "adopted_at": None,
            "adoption_commit": "",
            "first_seen_at": datetime(2024, 1, 10, tzinfo=timezone.utc),
            "last_seen_at": datetime(2024, 1, 16, tzinfo=timezone.utc),
            "created_at": datetime(2024, 1, 10, tzinfo=timezone.utc),
            "updated_at": datetime(2024, 1, 16, tzinfo=timezone.utc),
        }
        row.update(overrides)
        return row

    return _make
