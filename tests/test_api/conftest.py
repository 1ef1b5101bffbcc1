"""Fixtures for API tests.

Background services are patched out and every data dependency is
overridden with a mock, so no database or GitHub access happens.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from adoption_tracker.api.app import create_app
from adoption_tracker.api.auth import verify_api_key
from adoption_tracker.api.dependencies import (
    get_database,
    get_dispatcher,
    get_notification_repository,
    get_orchestrator,
    get_project_repository,
)
from adoption_tracker.projects.schemas import ProjectStats
from adoption_tracker.refresh.schemas import RefreshStatus, StartResult


@pytest.fixture
def mock_project_repo():
    repo = AsyncMock()
    repo.list_projects = AsyncMock(return_value=([], 0))
    repo.get_new_since = AsyncMock(return_value=[])
    repo.get_stats = AsyncMock(return_value=ProjectStats())
    repo.count_new_since = AsyncMock(return_value=0)
    repo.get_source_types = AsyncMock(return_value=[])
    repo.get_adoption_by_date = AsyncMock(return_value=[])
    repo.get_snapshots = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def mock_notification_repo():
    repo = AsyncMock()
    repo.list_all = AsyncMock(return_value=[])
    repo.get = AsyncMock(return_value=None)
    repo.create = AsyncMock()
    repo.update = AsyncMock()
    repo.delete = AsyncMock(return_value=True)
    repo.get_logs = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def mock_dispatcher():
    dispatcher = MagicMock()
    dispatcher.validate_config = MagicMock()
    dispatcher.send_test = AsyncMock()
    return dispatcher


@pytest.fixture
def mock_orchestrator():
    orchestrator = MagicMock()
    orchestrator.is_running = False
    orchestrator.start_refresh = AsyncMock(
        return_value=StartResult(started=True, message="Refresh started", job_id=1)
    )
    orchestrator.refresh_status = AsyncMock(return_value=RefreshStatus(is_running=False))
    orchestrator.last_refresh_time = AsyncMock(return_value=None)
    return orchestrator


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def client(mock_project_repo, mock_notification_repo, mock_dispatcher, mock_orchestrator, mock_db):
    """TestClient with mocked dependencies and auth disabled."""
    with patch("adoption_tracker.api.app.start_services", new=AsyncMock()), \
         patch("adoption_tracker.api.app.cleanup_dependencies", new=AsyncMock()):
        app = create_app()
        app.dependency_overrides[verify_api_key] = lambda: "test-key"
        app.dependency_overrides[get_project_repository] = lambda: mock_project_repo
        app.dependency_overrides[get_notification_repository] = lambda: mock_notification_repo
        app.dependency_overrides[get_dispatcher] = lambda: mock_dispatcher
        app.dependency_overrides[get_orchestrator] = lambda: mock_orchestrator
        app.dependency_overrides[get_database] = lambda: mock_db

        with TestClient(app) as c:
            yield c

        app.dependency_overrides.clear()
