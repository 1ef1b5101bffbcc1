"""
Command-line interface for the DHI adoption tracker.

Usage:
    dhi-tracker init-db         # Create tables
    dhi-tracker serve           # Run the API with the daily scheduler
    dhi-tracker refresh         # Run one refresh in the foreground
    dhi-tracker status          # Show the latest refresh job
    dhi-tracker health          # Check dependencies
    dhi-tracker send-test 3     # Send a test notification to subscriber 3
"""

import asyncio
import sys

import click

from adoption_tracker.config.settings import get_settings
from adoption_tracker.observability.logging import setup_logging
from adoption_tracker.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """DHI Adoption Tracker - find public repositories built on hardened images."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from adoption_tracker.storage.database import Database
    from adoption_tracker.storage.schema import create_all_tables

    async def run():
        db = Database()
        await db.connect()
        try:
            await create_all_tables(db)
        finally:
            await db.close()

        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the API server (also runs the daily refresh scheduler)."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "adoption_tracker.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command()
@click.option("--timeout", default=None, type=float, help="Overall run deadline in seconds")
@click.option("--no-snapshot", is_flag=True, help="Skip the aggregate snapshot")
def refresh(timeout: float | None, no_snapshot: bool) -> None:
    """Run one refresh in the foreground and print a summary."""
    from adoption_tracker.github.client import GitHubClient
    from adoption_tracker.github.config import GitHubConfig
    from adoption_tracker.refresh.config import RefreshConfig
    from adoption_tracker.refresh.orchestrator import build_orchestrator
    from adoption_tracker.storage.database import Database
    from adoption_tracker.storage.schema import create_all_tables

    settings = get_settings()
    if not settings.github_configured:
        click.echo(click.style("Warning: GITHUB_TOKEN is not set; code search requires it", fg="yellow"))

    overrides = {}
    if timeout is not None:
        overrides["timeout_seconds"] = timeout
    if no_snapshot:
        overrides["snapshot_enabled"] = False
    refresh_config = RefreshConfig(**overrides)
    github_config = GitHubConfig()

    async def run():
        db = Database()
        await db.connect()
        try:
            await create_all_tables(db)
            async with GitHubClient(
                token=settings.github_token,
                base_url=settings.github_api_url,
                timeout=github_config.request_timeout_seconds,
            ) as gh:
                orchestrator = build_orchestrator(
                    db, gh,
                    settings=settings,
                    github_config=github_config,
                    refresh_config=refresh_config,
                )
                return await orchestrator.run_once("cli")
        finally:
            await db.close()

    result = asyncio.run(run())

    if result is None:
        click.echo(click.style("A refresh is already running", fg="yellow"))
        sys.exit(1)

    click.echo("\nRefresh Summary:")
    click.echo("-" * 40)
    click.echo(f"  Job:                 {result.job_id}")
    click.echo(f"  Status:              {result.status}")
    click.echo(f"  Repos discovered:    {result.repos_discovered}")
    click.echo(f"  Projects upserted:   {result.projects_upserted}")
    click.echo(f"  Detail failures:     {result.details_failed}")
    click.echo(f"  Adoption dates set:  {result.adoptions_set}")
    click.echo(f"  Adoptions skipped:   {result.adoptions_skipped}")
    click.echo(f"  Projects notified:   {result.projects_notified}")
    click.echo(f"  Elapsed:             {result.elapsed_seconds:.1f}s")
    for error in result.errors:
        click.echo(click.style(f"  ! {error}", fg="red"))
    click.echo("-" * 40)

    sys.exit(0 if result.job_completed else 1)


@main.command()
def status() -> None:
    """Show the most recent refresh job and aggregate counts."""
    from adoption_tracker.projects.repository import ProjectRepository
    from adoption_tracker.refresh.repository import RefreshJobRepository
    from adoption_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            job = await RefreshJobRepository(db).get_latest()
            stats = await ProjectRepository(db).get_stats()
        finally:
            await db.close()
        return job, stats

    job, stats = asyncio.run(run())

    click.echo("\nLatest refresh:")
    if job is None:
        click.echo("  (none)")
    else:
        click.echo(f"  #{job.id} {job.status} ({job.trigger})")
        click.echo(f"  started:   {job.started_at or '-'}")
        click.echo(f"  completed: {job.completed_at or '-'}")
        click.echo(f"  projects:  {job.projects_found}")
        if job.error_message:
            click.echo(click.style(f"  error:     {job.error_message}", fg="red"))

    click.echo("\nProjects:")
    click.echo(f"  total:   {stats.total_projects}")
    click.echo(f"  stars:   {stats.total_stars}")
    click.echo(f"  popular: {stats.popular_count}")
    click.echo(f"  notable: {stats.notable_count}")


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            from adoption_tracker.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["github_configured"] = settings.github_configured
        results["smtp_configured"] = settings.smtp_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        for name, ok in results.items():
            icon = "✓" if ok else "✗"
            color = "green" if ok else "red"
            click.echo(click.style(f"  {icon} {name}: {ok}", fg=color))

        click.echo("-" * 40)

        if results["postgres"]:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


@main.command("send-test")
@click.argument("config_id", type=int)
def send_test(config_id: int) -> None:
    """Send a test notification to one subscriber."""
    from adoption_tracker.notifications.channels import DeliveryError, ProviderConfigError
    from adoption_tracker.notifications.dispatcher import NotificationDispatcher
    from adoption_tracker.notifications.repository import NotificationRepository
    from adoption_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            dispatcher = NotificationDispatcher(NotificationRepository(db), settings=get_settings())
            await dispatcher.send_test(config_id)
        finally:
            await db.close()

    try:
        asyncio.run(run())
    except LookupError as e:
        click.echo(click.style(str(e), fg="red"))
        sys.exit(2)
    except (ProviderConfigError, DeliveryError) as e:
        click.echo(click.style(f"Test notification failed: {e}", fg="red"))
        sys.exit(1)

    click.echo(click.style("Test notification sent", fg="green"))


if __name__ == "__main__":
    main()
