"""Notification repository: subscriber CRUD and the delivery audit log."""

import logging
from typing import Any

from adoption_tracker.notifications.schemas import NotificationConfig, NotificationLog
from adoption_tracker.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS notification_configs (
    id                BIGSERIAL PRIMARY KEY,
    name              TEXT NOT NULL,
    type              TEXT NOT NULL,
    enabled           BOOLEAN NOT NULL DEFAULT TRUE,
    config            JSONB NOT NULL DEFAULT '{}',
    last_triggered_at TIMESTAMPTZ,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS notification_logs (
    id            BIGSERIAL PRIMARY KEY,
    config_id     BIGINT NOT NULL REFERENCES notification_configs(id) ON DELETE CASCADE,
    project_id    BIGINT REFERENCES projects(id) ON DELETE SET NULL,
    status        TEXT NOT NULL,
    error_message TEXT NOT NULL DEFAULT '',
    sent_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_notification_logs_config
    ON notification_logs(config_id, sent_at DESC);
"""

_UPDATABLE_FIELDS = ("name", "type", "enabled", "config")


def _row_to_config(row: Any) -> NotificationConfig:
    return NotificationConfig(
        id=row["id"],
        name=row["name"],
        type=row["type"],
        enabled=row["enabled"],
        config=NotificationConfig.decode_payload(row["config"]),
        last_triggered_at=row["last_triggered_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_log(row: Any) -> NotificationLog:
    return NotificationLog(
        id=row["id"],
        config_id=row["config_id"],
        project_id=row["project_id"],
        status=row["status"],
        error_message=row["error_message"] or "",
        sent_at=row["sent_at"],
    )


class NotificationRepository:
    """Persistence for notification subscribers and delivery attempts."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create notification tables (idempotent). Requires the projects table."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Notification tables ensured")

    async def create(self, config: NotificationConfig) -> NotificationConfig:
        row = await self._db.fetchrow(
            """
            INSERT INTO notification_configs (name, type, enabled, config)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            config.name,
            config.type,
            config.enabled,
            config.config,
        )
        return _row_to_config(row)

    async def update(self, config_id: int, **changes: Any) -> NotificationConfig | None:
        """Update the given fields of a subscriber.

        Args:
            config_id: Subscriber to update.
            **changes: Any of name, type, enabled, config. None values are ignored.

        Returns:
            The updated subscriber, or None if it does not exist.
        """
        sets: list[str] = []
        params: list[Any] = []
        idx = 1
        for key in _UPDATABLE_FIELDS:
            value = changes.get(key)
            if value is None:
                continue
            sets.append(f"{key} = ${idx}")
            params.append(value)
            idx += 1

        if not sets:
            return await self.get(config_id)

        sets.append("updated_at = NOW()")
        params.append(config_id)
        row = await self._db.fetchrow(
            f"UPDATE notification_configs SET {', '.join(sets)} WHERE id = ${idx} RETURNING *",
            *params,
        )
        return _row_to_config(row) if row else None

    async def delete(self, config_id: int) -> bool:
        """Delete a subscriber and its log. Returns True if a row was deleted."""
        result = await self._db.execute(
            "DELETE FROM notification_configs WHERE id = $1", config_id,
        )
        return result.endswith(" 1")

    async def get(self, config_id: int) -> NotificationConfig | None:
        row = await self._db.fetchrow(
            "SELECT * FROM notification_configs WHERE id = $1", config_id,
        )
        return _row_to_config(row) if row else None

    async def list_all(self) -> list[NotificationConfig]:
        rows = await self._db.fetch(
            "SELECT * FROM notification_configs ORDER BY created_at DESC, id DESC"
        )
        return [_row_to_config(r) for r in rows]

    async def list_enabled(self) -> list[NotificationConfig]:
        rows = await self._db.fetch(
            "SELECT * FROM notification_configs WHERE enabled = TRUE ORDER BY id"
        )
        return [_row_to_config(r) for r in rows]

    async def mark_triggered(self, config_id: int) -> None:
        await self._db.execute(
            "UPDATE notification_configs SET last_triggered_at = NOW() WHERE id = $1",
            config_id,
        )

    async def create_log(self, log: NotificationLog) -> NotificationLog:
        row = await self._db.fetchrow(
            """
            INSERT INTO notification_logs (config_id, project_id, status, error_message)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            log.config_id,
            log.project_id,
            log.status,
            log.error_message,
        )
        return _row_to_log(row)

    async def get_logs(self, config_id: int, limit: int = 50) -> list[NotificationLog]:
        """Most recent delivery attempts for a subscriber."""
        rows = await self._db.fetch(
            """
            SELECT * FROM notification_logs
            WHERE config_id = $1
            ORDER BY sent_at DESC, id DESC
            LIMIT $2
            """,
            config_id,
            limit,
        )
        return [_row_to_log(r) for r in rows]
