"""Fixtures for notification tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from adoption_tracker.notifications.schemas import NotificationConfig, NotificationLog


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
def mock_notification_repo():
    """Mock NotificationRepository that echoes created logs."""
    repo = AsyncMock()
    repo.list_enabled = AsyncMock(return_value=[])
    repo.get = AsyncMock(return_value=None)
    repo.mark_triggered = AsyncMock()
    repo.create_log = AsyncMock(side_effect=lambda log: log)
    return repo


@pytest.fixture
def chat_config() -> NotificationConfig:
    return NotificationConfig(
        id=1,
        name="team chat",
        type="chat",
        config={"webhook_url": "https://hooks.example.com/T000/B000", "channel": "#dhi"},
    )


@pytest.fixture
def email_config() -> NotificationConfig:
    return NotificationConfig(
        id=2,
        name="ops mail",
        type="email",
        config={"to": "ops@example.com, sec@example.com"},
    )


@pytest.fixture
def config_row():
    """Factory for notification_configs rows as returned by asyncpg."""

    def _make(**overrides):
        row = {
            "id": 1,
            "name": "team chat",
            "type": "chat",
            "enabled": True,
            "config": '{"webhook_url": "https://hooks.example.com/x"}',
            "last_triggered_at": None,
            "created_at": datetime(2024, 1, 10, tzinfo=timezone.utc),
            "updated_at": datetime(2024, 1, 10, tzinfo=timezone.utc),
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture
def logged_statuses(mock_notification_repo):
    """Returns a callable listing (config_id, project_id, status) of written logs."""

    def _statuses() -> list[tuple]:
        logs: list[NotificationLog] = [c.args[0] for c in mock_notification_repo.create_log.call_args_list]
        return [(log.config_id, log.project_id, log.status) for log in logs]

    return _statuses
