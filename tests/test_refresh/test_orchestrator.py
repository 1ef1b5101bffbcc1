"""Tests for RefreshOrchestrator phases, single-flight, and failure handling."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import call

import pytest

from adoption_tracker.github.exceptions import (
    RateLimitedError,
    TransientApiError,
    UnrecoverableApiError,
)
from adoption_tracker.github.schemas import AdoptionInfo, RepoDetails, SearchHit
from adoption_tracker.refresh.schemas import JOB_COMPLETED, JOB_FAILED, RefreshJob

MONDAY_MIDNIGHT = datetime(2024, 1, 15, tzinfo=timezone.utc)


async def _hang(*args, **kwargs):
    await asyncio.Event().wait()


# ── Single flight ─────────────────────────────────


class TestSingleFlight:
    """At most one run; the guard is always released."""

    @pytest.mark.asyncio
    async def test_start_returns_job_id(self, make_orchestrator, mock_jobs):
        orchestrator = make_orchestrator()

        result = await orchestrator.start_refresh("manual")
        await orchestrator.wait_for_idle()

        assert result.started is True
        assert result.job_id == 1
        assert result.message == "Refresh started"
        mock_jobs.create.assert_awaited_once_with("manual")
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_concurrent_starts_create_one_job(self, make_orchestrator, mock_crawler, mock_jobs):
        gate = asyncio.Event()

        async def gated_crawl(*args, **kwargs):
            await gate.wait()
            return {}

        mock_crawler.crawl.side_effect = gated_crawl
        orchestrator = make_orchestrator()

        results = await asyncio.gather(*(orchestrator.start_refresh("manual") for _ in range(5)))

        assert sum(r.started for r in results) == 1
        rejected = [r for r in results if not r.started]
        assert all(r.message == "Refresh already in progress" for r in rejected)
        assert all(r.job_id is None for r in rejected)
        assert mock_jobs.create.await_count == 1
        assert orchestrator.is_running

        gate.set()
        await orchestrator.wait_for_idle()
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_restart_after_completion(self, make_orchestrator):
        orchestrator = make_orchestrator()

        first = await orchestrator.start_refresh()
        await orchestrator.wait_for_idle()
        second = await orchestrator.start_refresh()
        await orchestrator.wait_for_idle()

        assert first.started and second.started
        assert second.job_id == 2

    @pytest.mark.asyncio
    async def test_job_creation_failure_releases_guard(self, make_orchestrator, mock_jobs):
        mock_jobs.create.side_effect = ConnectionError("db down")
        orchestrator = make_orchestrator()

        with pytest.raises(ConnectionError):
            await orchestrator.start_refresh()

        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_run_once_rejected_while_running(self, make_orchestrator, mock_crawler):
        gate = asyncio.Event()

        async def gated_crawl(*args, **kwargs):
            await gate.wait()
            return {}

        mock_crawler.crawl.side_effect = gated_crawl
        orchestrator = make_orchestrator()

        await orchestrator.start_refresh()
        assert await orchestrator.run_once("cli") is None

        gate.set()
        await orchestrator.wait_for_idle()


# ── Phases ─────────────────────────────────


class TestPhases:
    """Crawl, details, upsert, complete, backfill, notify, snapshot."""

    @pytest.mark.asyncio
    async def test_full_run(self, make_orchestrator, mock_jobs, mock_projects, mock_dispatcher):
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once("cli")

        assert result.status == JOB_COMPLETED
        assert result.repos_discovered == 3
        assert result.projects_upserted == 3
        mock_jobs.mark_running.assert_awaited_once_with(1)
        mock_jobs.mark_completed.assert_awaited_once_with(1, 3)
        mock_jobs.mark_failed.assert_not_awaited()
        mock_projects.record_snapshot.assert_awaited_once()
        assert result.snapshot_recorded
        # Nothing adopted this week: no fan-out
        mock_dispatcher.notify_new_projects.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_project_fields_from_hit_and_details(self, make_orchestrator, mock_crawler, mock_projects):
        mock_crawler.crawl.return_value = {
            "acme/app": SearchHit(
                repo_full_name="acme/app",
                repo_url="https://github.com/acme/app",
                path="deploy/docker-compose.yml",
                file_url="https://github.com/acme/app/blob/main/deploy/docker-compose.yml",
            )
        }
        orchestrator = make_orchestrator()

        await orchestrator.run_once()

        project = mock_projects.upsert.await_args[0][0]
        assert project.repo_full_name == "acme/app"
        assert project.dockerfile_path == "deploy/docker-compose.yml"
        assert project.source_type == "compose"
        assert project.description == "acme/app description"
        assert project.primary_language == "Python"
        assert project.adopted_at is None

    @pytest.mark.asyncio
    async def test_detail_failure_is_skipped(self, make_orchestrator, mock_fetcher, mock_projects, mock_jobs):
        def details(name):
            if name == "acme/b":
                raise TransientApiError("boom", status_code=502)
            return RepoDetails(full_name=name, url=f"https://github.com/{name}", stars=5)

        mock_fetcher.fetch_details.side_effect = details
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_COMPLETED
        assert result.details_failed == 1
        upserted = [c.args[0].repo_full_name for c in mock_projects.upsert.await_args_list]
        assert upserted == ["acme/a", "acme/c"]
        mock_jobs.mark_completed.assert_awaited_once_with(1, 2)

    @pytest.mark.asyncio
    async def test_rate_limited_detail_is_skipped(self, make_orchestrator, mock_fetcher, mock_jobs):
        mock_fetcher.fetch_details.side_effect = RateLimitedError("limited", status_code=403)
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_COMPLETED
        assert result.details_failed == 3
        mock_jobs.mark_completed.assert_awaited_once_with(1, 0)

    @pytest.mark.asyncio
    async def test_upsert_failure_is_skipped(self, make_orchestrator, mock_projects, mock_jobs):
        def upsert(project):
            if project.repo_full_name == "acme/a":
                raise RuntimeError("constraint")
            return project

        mock_projects.upsert.side_effect = upsert
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.upserts_failed == 1
        mock_jobs.mark_completed.assert_awaited_once_with(1, 2)

    @pytest.mark.asyncio
    async def test_detail_delay_after_each_fetch(self, make_orchestrator, mock_sleep):
        orchestrator = make_orchestrator()

        await orchestrator.run_once()

        assert mock_sleep.await_args_list == [call(1.0)] * 3

    @pytest.mark.asyncio
    async def test_crawl_failure_fails_job(self, make_orchestrator, mock_crawler, mock_jobs, mock_projects):
        mock_crawler.crawl.side_effect = UnrecoverableApiError("validation failed", status_code=422)
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_FAILED
        mock_jobs.mark_failed.assert_awaited_once_with(1, "validation failed")
        mock_jobs.mark_completed.assert_not_awaited()
        mock_projects.upsert.assert_not_awaited()
        mock_projects.record_snapshot.assert_not_awaited()
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_mark_running_failure(self, make_orchestrator, mock_jobs, mock_crawler):
        mock_jobs.mark_running.side_effect = ConnectionError("db gone")
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_FAILED
        mock_crawler.crawl.assert_not_awaited()
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_job_not_pending_is_abandoned(self, make_orchestrator, mock_jobs, mock_crawler):
        mock_jobs.mark_running.return_value = False
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_FAILED
        mock_crawler.crawl.assert_not_awaited()
        mock_jobs.mark_failed.assert_awaited_once_with(1, "could not start job: job was not pending")
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_mark_completed_failure_keeps_going(self, make_orchestrator, mock_jobs, mock_projects):
        mock_jobs.mark_completed.side_effect = ConnectionError("db blip")
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_COMPLETED
        mock_jobs.mark_failed.assert_not_awaited()
        mock_projects.record_snapshot.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_snapshot_disabled(self, make_orchestrator, mock_projects):
        orchestrator = make_orchestrator(snapshot_enabled=False)

        result = await orchestrator.run_once()

        mock_projects.record_snapshot.assert_not_awaited()
        assert not result.snapshot_recorded


# ── Backfill ─────────────────────────────────


class TestBackfill:
    """Adoption dates are best effort and never change the job outcome."""

    @pytest.mark.asyncio
    async def test_sets_dates_and_skips_failures(
        self, make_orchestrator, mock_projects, mock_locator, mock_sleep, pending_project,
    ):
        mock_projects.get_without_adoption_date.return_value = [
            pending_project(11, "acme/a", stars=900),
            pending_project(12, "acme/b", stars=50),
            pending_project(13, "acme/c", stars=5),
        ]
        found = AdoptionInfo(
            date=datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc),
            commit_url="https://github.com/acme/c/commit/1",
        )
        mock_locator.locate_adoption.side_effect = [
            RateLimitedError("still limited", status_code=403),
            UnrecoverableApiError("no commits"),
            found,
        ]
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_COMPLETED
        assert result.adoptions_skipped == 2
        assert result.adoptions_set == 1
        mock_projects.update_adoption.assert_awaited_once_with(13, found.date, found.commit_url)
        # 3 detail delays then 3 adoption delays
        assert mock_sleep.await_args_list[-3:] == [call(0.5)] * 3

    @pytest.mark.asyncio
    async def test_load_failure_does_not_fail_job(self, make_orchestrator, mock_projects, mock_jobs):
        mock_projects.get_without_adoption_date.side_effect = ConnectionError("db blip")
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_COMPLETED
        mock_jobs.mark_failed.assert_not_awaited()
        mock_projects.record_snapshot.assert_awaited_once()


# ── Notify ─────────────────────────────────


class TestNotify:
    """Fan-out of projects adopted since Monday 00:00 UTC."""

    @pytest.mark.asyncio
    async def test_notifies_this_weeks_adoptions(
        self, make_orchestrator, mock_projects, mock_dispatcher, sample_project,
    ):
        mock_projects.get_new_since.return_value = [sample_project]
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        mock_projects.get_new_since.assert_awaited_once_with(MONDAY_MIDNIGHT)
        mock_dispatcher.notify_new_projects.assert_awaited_once_with([sample_project])
        assert result.projects_notified == 1

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_contained(
        self, make_orchestrator, mock_projects, mock_dispatcher, mock_jobs, sample_project,
    ):
        mock_projects.get_new_since.return_value = [sample_project]
        mock_dispatcher.notify_new_projects.side_effect = ConnectionError("configs unavailable")
        orchestrator = make_orchestrator()

        result = await orchestrator.run_once()

        assert result.status == JOB_COMPLETED
        mock_jobs.mark_failed.assert_not_awaited()
        mock_projects.record_snapshot.assert_awaited_once()


# ── Timeout and cancellation ─────────────────────────────────


class TestDeadline:
    """The overall deadline fails a job only before it completes."""

    @pytest.mark.asyncio
    async def test_timeout_during_crawl(self, make_orchestrator, mock_crawler, mock_jobs):
        mock_crawler.crawl.side_effect = _hang
        orchestrator = make_orchestrator(timeout_seconds=0.05)

        result = await orchestrator.run_once()

        assert result.status == JOB_FAILED
        mock_jobs.mark_failed.assert_awaited_once()
        assert "timed out" in mock_jobs.mark_failed.await_args[0][1]
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_timeout_during_backfill_keeps_completed(
        self, make_orchestrator, mock_projects, mock_locator, mock_jobs, pending_project,
    ):
        mock_projects.get_without_adoption_date.return_value = [pending_project(11, "acme/a")]
        mock_locator.locate_adoption.side_effect = _hang
        orchestrator = make_orchestrator(timeout_seconds=0.05)

        result = await orchestrator.run_once()

        assert result.status == JOB_COMPLETED
        mock_jobs.mark_completed.assert_awaited_once()
        mock_jobs.mark_failed.assert_not_awaited()
        mock_projects.record_snapshot.assert_not_awaited()
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_shutdown_cancels_and_fails_job(self, make_orchestrator, mock_crawler, mock_jobs):
        started = asyncio.Event()

        async def slow_crawl(*args, **kwargs):
            started.set()
            await asyncio.Event().wait()

        mock_crawler.crawl.side_effect = slow_crawl
        orchestrator = make_orchestrator()

        await orchestrator.start_refresh()
        await started.wait()
        await orchestrator.shutdown()

        mock_jobs.mark_failed.assert_awaited_once_with(1, "refresh cancelled")
        assert not orchestrator.is_running


# ── Status ─────────────────────────────────


class TestStatus:
    @pytest.mark.asyncio
    async def test_refresh_status(self, make_orchestrator, mock_jobs):
        last = RefreshJob(id=4, status=JOB_COMPLETED, projects_found=12)
        mock_jobs.get_latest.return_value = last
        next_run = datetime(2024, 1, 17, 3, 0, tzinfo=timezone.utc)
        orchestrator = make_orchestrator()
        orchestrator.set_next_refresh_fn(lambda: next_run)

        status = await orchestrator.refresh_status()

        assert status.is_running is False
        assert status.last_job is last
        assert status.next_refresh == next_run

    @pytest.mark.asyncio
    async def test_no_next_refresh_without_scheduler(self, make_orchestrator):
        status = await make_orchestrator().refresh_status()
        assert status.next_refresh is None

    @pytest.mark.asyncio
    async def test_last_refresh_time(self, make_orchestrator, mock_jobs):
        done = datetime(2024, 1, 16, 3, 12, tzinfo=timezone.utc)
        mock_jobs.get_last_completed.return_value = RefreshJob(
            id=3, status=JOB_COMPLETED, completed_at=done,
        )
        assert await make_orchestrator().last_refresh_time() == done

    @pytest.mark.asyncio
    async def test_last_refresh_time_none(self, make_orchestrator):
        assert await make_orchestrator().last_refresh_time() is None
