"""Schema bootstrap for every table the tracker owns."""

import logging

from adoption_tracker.storage.database import Database

logger = logging.getLogger(__name__)


async def create_all_tables(database: Database) -> None:
    """Create all tables and indexes (idempotent).

    Order matters: notification_logs references projects and
    notification_configs.
    """
    from adoption_tracker.notifications.repository import NotificationRepository
    from adoption_tracker.projects.repository import ProjectRepository
    from adoption_tracker.refresh.repository import RefreshJobRepository

    await ProjectRepository(database).create_tables()
    await RefreshJobRepository(database).create_table()
    await NotificationRepository(database).create_tables()
    logger.info("Database schema ensured")
