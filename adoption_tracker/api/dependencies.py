"""
Dependency injection for FastAPI endpoints.

The database pool, GitHub client, orchestrator and scheduler are
process-wide singletons. ``start_services`` builds them during the app
lifespan; the getters also build lazily so a route works even if
startup was skipped.
"""

from datetime import timedelta

import structlog

from adoption_tracker.config.settings import get_settings
from adoption_tracker.github.client import GitHubClient
from adoption_tracker.github.config import GitHubConfig
from adoption_tracker.notifications.dispatcher import NotificationDispatcher
from adoption_tracker.notifications.repository import NotificationRepository
from adoption_tracker.projects.repository import ProjectRepository
from adoption_tracker.refresh.config import RefreshConfig
from adoption_tracker.refresh.orchestrator import RefreshOrchestrator, build_orchestrator
from adoption_tracker.refresh.scheduler import RefreshScheduler
from adoption_tracker.storage.database import Database
from adoption_tracker.storage.schema import create_all_tables

logger = structlog.get_logger(__name__)

# Global service instances
_database: Database | None = None
_github_client: GitHubClient | None = None
_orchestrator: RefreshOrchestrator | None = None
_scheduler: RefreshScheduler | None = None


async def get_database() -> Database:
    """Get the shared database, connecting on first use."""
    global _database

    if _database is None:
        database = Database()
        await database.connect()
        _database = database

    return _database


async def get_project_repository() -> ProjectRepository:
    return ProjectRepository(await get_database())


async def get_notification_repository() -> NotificationRepository:
    return NotificationRepository(await get_database())


async def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        await get_notification_repository(),
        settings=get_settings(),
    )


async def get_orchestrator() -> RefreshOrchestrator:
    """
    Get the refresh orchestrator instance.

    There must be exactly one per process; the single-flight guard lives
    on it.
    """
    global _orchestrator, _github_client

    if _orchestrator is None:
        settings = get_settings()
        github_config = GitHubConfig()
        database = await get_database()

        if _github_client is None:
            if not settings.github_configured:
                logger.warning("GITHUB_TOKEN not set; code search requires authentication")
            _github_client = GitHubClient(
                token=settings.github_token,
                base_url=settings.github_api_url,
                timeout=github_config.request_timeout_seconds,
            )
            await _github_client.__aenter__()

        _orchestrator = build_orchestrator(
            database,
            _github_client,
            settings=settings,
            github_config=github_config,
            refresh_config=RefreshConfig(),
        )

    return _orchestrator


def get_scheduler() -> RefreshScheduler | None:
    return _scheduler


async def start_services() -> None:
    """Connect storage, build the orchestrator, start the scheduler, check staleness."""
    global _scheduler

    settings = get_settings()
    database = await get_database()
    await create_all_tables(database)
    orchestrator = await get_orchestrator()

    if settings.scheduler_enabled and _scheduler is None:
        _scheduler = RefreshScheduler(
            orchestrator,
            daily_at=settings.refresh_daily_at,
            poll_seconds=RefreshConfig().scheduler_poll_seconds,
        )
        _scheduler.start()

    if settings.refresh_check_on_startup:
        scheduler = _scheduler or RefreshScheduler(orchestrator)
        await scheduler.check_stale(timedelta(hours=settings.refresh_stale_after_hours))


async def cleanup_dependencies() -> None:
    """Stop background work and release connections."""
    global _database, _github_client, _orchestrator, _scheduler

    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None

    if _orchestrator is not None:
        await _orchestrator.shutdown()
        _orchestrator = None

    if _github_client is not None:
        await _github_client.close()
        _github_client = None

    if _database is not None:
        await _database.close()
        _database = None
