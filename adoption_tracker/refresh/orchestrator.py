"""Refresh orchestration: the single-flight job runner.

A run goes through these phases in order, all under one overall timeout:

1. Mark the job running
2. Crawl code search (failure fails the job and ends the run)
3. Fetch details and upsert each repository (per-repository failures are skipped)
4. Mark the job completed with the number of successful upserts
5. Backfill missing adoption dates (best effort)
6. Notify subscribers about projects adopted this week
7. Record an aggregate snapshot

The single-flight guard is released when the run ends, whichever phase
it ended in. A timeout before step 4 fails the job; a timeout after it
abandons the remaining best-effort work and leaves the job completed.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import structlog

from adoption_tracker.config.settings import Settings
from adoption_tracker.github.client import GitHubClient
from adoption_tracker.github.config import GitHubConfig
from adoption_tracker.github.crawler import SearchCrawler
from adoption_tracker.github.details import AdoptionLocator, DetailFetcher
from adoption_tracker.notifications.dispatcher import NotificationDispatcher
from adoption_tracker.notifications.repository import NotificationRepository
from adoption_tracker.observability.metrics import get_metrics
from adoption_tracker.projects.classification import classify_source
from adoption_tracker.projects.repository import ProjectRepository
from adoption_tracker.projects.schemas import Project
from adoption_tracker.refresh.config import RefreshConfig
from adoption_tracker.refresh.guard import SingleFlightGuard
from adoption_tracker.refresh.repository import RefreshJobRepository
from adoption_tracker.refresh.schemas import (
    JOB_COMPLETED,
    JOB_FAILED,
    RefreshRunResult,
    RefreshStatus,
    StartResult,
)
from adoption_tracker.refresh.windows import start_of_week
from adoption_tracker.storage.database import Database

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
NextRefreshFn = Callable[[], datetime | None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshOrchestrator:
    """Runs at most one refresh at a time and records its lifecycle.

    ``start_refresh`` returns as soon as the job row exists; the run
    continues in a background task owned by the orchestrator.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        jobs: RefreshJobRepository,
        crawler: SearchCrawler,
        fetcher: DetailFetcher,
        locator: AdoptionLocator,
        dispatcher: NotificationDispatcher | None = None,
        config: RefreshConfig | None = None,
        github_config: GitHubConfig | None = None,
        guard: SingleFlightGuard | None = None,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._projects = projects
        self._jobs = jobs
        self._crawler = crawler
        self._fetcher = fetcher
        self._locator = locator
        self._dispatcher = dispatcher
        self._config = config or RefreshConfig()
        self._github_config = github_config or GitHubConfig()
        self._guard = guard or SingleFlightGuard()
        self._sleep = sleep
        self._clock = clock
        self._next_refresh_fn: NextRefreshFn | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._guard.is_held

    def set_next_refresh_fn(self, fn: NextRefreshFn | None) -> None:
        """Attach the accessor reported as ``next_refresh`` in status."""
        self._next_refresh_fn = fn

    async def start_refresh(self, trigger: str = "manual") -> StartResult:
        """Create a job and launch the run in the background.

        Returns:
            ``started=False`` without creating a job if a run is in progress.

        Raises:
            Exception: If the job row cannot be created (the guard is released).
        """
        if not self._guard.try_acquire():
            logger.info("Refresh already running", trigger=trigger)
            get_metrics().record_refresh("rejected")
            return StartResult(started=False, message="Refresh already in progress")

        try:
            job = await self._jobs.create(trigger)
        except BaseException:
            self._guard.release()
            raise

        task = asyncio.create_task(self.run_refresh(job.id, trigger), name=f"refresh-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info("Refresh started", job_id=job.id, trigger=trigger)
        return StartResult(started=True, message="Refresh started", job_id=job.id)

    async def run_once(self, trigger: str = "cli") -> RefreshRunResult | None:
        """Run a refresh in the caller's task. Returns None if one is already running."""
        if not self._guard.try_acquire():
            logger.info("Refresh already running", trigger=trigger)
            return None
        try:
            job = await self._jobs.create(trigger)
        except BaseException:
            self._guard.release()
            raise
        return await self.run_refresh(job.id, trigger)

    async def refresh_status(self) -> RefreshStatus:
        last_job = await self._jobs.get_latest()
        next_refresh = self._next_refresh_fn() if self._next_refresh_fn else None
        return RefreshStatus(
            is_running=self._guard.is_held,
            last_job=last_job,
            next_refresh=next_refresh,
        )

    async def last_refresh_time(self) -> datetime | None:
        """Completion time of the most recent successful refresh."""
        job = await self._jobs.get_last_completed()
        return job.completed_at if job else None

    async def wait_for_idle(self) -> None:
        """Wait for background runs launched by this orchestrator to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel background runs and wait for their cleanup."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run_refresh(self, job_id: int, trigger: str) -> RefreshRunResult:
        """Execute one run. The caller must hold the guard; it is released here."""
        result = RefreshRunResult(job_id=job_id, trigger=trigger)
        start = time.monotonic()
        metrics = get_metrics()
        metrics.refresh_running.set(1)

        with structlog.contextvars.bound_contextvars(job_id=job_id, trigger=trigger):
            try:
                try:
                    marked = await self._jobs.mark_running(job_id)
                except Exception as e:
                    logger.error("Failed to mark job running", error=str(e))
                    result.errors.append(f"start: {e}")
                    await self._fail_job(job_id, f"could not start job: {e}", result)
                    return result
                if not marked:
                    logger.error("Job was not pending; run abandoned")
                    result.errors.append("start: job was not pending")
                    await self._fail_job(job_id, "could not start job: job was not pending", result)
                    return result

                try:
                    await asyncio.wait_for(
                        self._phases(job_id, result),
                        timeout=self._config.timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    message = f"refresh timed out after {self._config.timeout_seconds:.0f}s"
                    result.errors.append(message)
                    if result.job_completed:
                        logger.warning("Refresh deadline hit after completion; remaining work abandoned")
                    else:
                        logger.error("Refresh timed out", timeout=self._config.timeout_seconds)
                        await self._fail_job(job_id, message, result)
                except asyncio.CancelledError:
                    if not result.job_completed:
                        await self._fail_job(job_id, "refresh cancelled", result)
                    raise
                except Exception as e:
                    result.errors.append(str(e))
                    if result.job_completed:
                        logger.error("Post-completion phase failed", error=str(e), exc_info=True)
                    else:
                        logger.error("Refresh failed", error=str(e), error_type=type(e).__name__)
                        await self._fail_job(job_id, str(e), result)
            finally:
                self._guard.release()
                result.elapsed_seconds = time.monotonic() - start
                metrics.refresh_running.set(0)
                metrics.record_refresh(result.status, result.elapsed_seconds)
                logger.info(
                    "Refresh finished",
                    status=result.status,
                    repos_discovered=result.repos_discovered,
                    projects_upserted=result.projects_upserted,
                    details_failed=result.details_failed,
                    adoptions_set=result.adoptions_set,
                    projects_notified=result.projects_notified,
                    elapsed_seconds=round(result.elapsed_seconds, 1),
                )

        return result

    async def _phases(self, job_id: int, result: RefreshRunResult) -> None:
        # Crawl; any error propagates and fails the job
        hits = await self._crawler.crawl()
        result.repos_discovered = len(hits)
        logger.info("Crawl finished", repositories=len(hits))

        # Details and upsert
        for name, hit in hits.items():
            try:
                details = await self._fetcher.fetch_details(name)
            except Exception as e:
                result.details_failed += 1
                logger.warning(
                    "Skipping repository: detail fetch failed",
                    repo=name, error_type=type(e).__name__, error=str(e),
                )
            else:
                project = Project(
                    repo_full_name=name,
                    github_url=details.url or hit.repo_url,
                    stars=details.stars,
                    description=details.description,
                    primary_language=details.language,
                    dockerfile_path=hit.path,
                    file_url=hit.file_url,
                    source_type=classify_source(hit.path),
                )
                try:
                    await self._projects.upsert(project)
                    result.projects_upserted += 1
                except Exception as e:
                    result.upserts_failed += 1
                    logger.error("Upsert failed", repo=name, error=str(e))
            await self._sleep(self._github_config.detail_delay_seconds)

        get_metrics().projects_upserted.inc(result.projects_upserted)

        result.status = JOB_COMPLETED
        try:
            await self._jobs.mark_completed(job_id, result.projects_upserted)
        except Exception as e:
            # Job row stays 'running'; visible through the status endpoint
            result.errors.append(f"complete: {e}")
            logger.error("Failed to mark job completed", error=str(e))

        await self._backfill_adoptions(result)
        await self._notify_new(result)
        await self._record_snapshot(result)

    async def _backfill_adoptions(self, result: RefreshRunResult) -> None:
        try:
            pending = await self._projects.get_without_adoption_date()
        except Exception as e:
            result.errors.append(f"backfill: {e}")
            logger.error("Could not load projects missing adoption dates", error=str(e))
            return

        if not pending:
            return
        logger.info("Backfilling adoption dates", projects=len(pending))

        metrics = get_metrics()
        for project in pending:
            try:
                info = await self._locator.locate_adoption(
                    project.repo_full_name, project.dockerfile_path,
                )
                if await self._projects.update_adoption(project.id, info.date, info.commit_url):
                    result.adoptions_set += 1
                    metrics.adoptions_backfilled.labels(status="set").inc()
            except Exception as e:
                # Rate limited after the retry and any other failure are both skips
                result.adoptions_skipped += 1
                metrics.adoptions_backfilled.labels(status="skipped").inc()
                logger.info(
                    "Adoption lookup skipped",
                    repo=project.repo_full_name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            await self._sleep(self._github_config.adoption_delay_seconds)

    async def _notify_new(self, result: RefreshRunResult) -> None:
        if self._dispatcher is None:
            return
        since = start_of_week(self._clock())
        try:
            new_projects = await self._projects.get_new_since(since)
            if not new_projects:
                return
            dispatch = await self._dispatcher.notify_new_projects(new_projects)
            result.projects_notified = len(new_projects)
            logger.info(
                "Notifications dispatched",
                projects=len(new_projects), sent=dispatch.sent, failed=dispatch.failed,
            )
        except Exception as e:
            result.errors.append(f"notify: {e}")
            logger.error("Notification phase failed", error=str(e))

    async def _record_snapshot(self, result: RefreshRunResult) -> None:
        if not self._config.snapshot_enabled:
            return
        try:
            snapshot = await self._projects.record_snapshot()
            result.snapshot_recorded = True
            get_metrics().projects_tracked.set(snapshot.total_projects)
        except Exception as e:
            result.errors.append(f"snapshot: {e}")
            logger.error("Failed to record snapshot", error=str(e))

    async def _fail_job(self, job_id: int, message: str, result: RefreshRunResult) -> None:
        result.status = JOB_FAILED
        try:
            await self._jobs.mark_failed(job_id, message)
        except Exception as e:
            logger.error("Failed to mark job failed", error=str(e))


def build_orchestrator(
    database: Database,
    github_client: GitHubClient,
    settings: Settings | None = None,
    github_config: GitHubConfig | None = None,
    refresh_config: RefreshConfig | None = None,
) -> RefreshOrchestrator:
    """Wire an orchestrator from a connected database and an open GitHub client."""
    github_config = github_config or GitHubConfig()
    return RefreshOrchestrator(
        projects=ProjectRepository(database),
        jobs=RefreshJobRepository(database),
        crawler=SearchCrawler(github_client, github_config),
        fetcher=DetailFetcher(github_client, github_config),
        locator=AdoptionLocator(github_client, github_config),
        dispatcher=NotificationDispatcher(NotificationRepository(database), settings=settings),
        config=refresh_config,
        github_config=github_config,
    )
