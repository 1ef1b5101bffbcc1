"""Repository detail and adoption-date lookups.

Both lookups share one policy: a rate-limited call sleeps a fixed
back-off, is retried exactly once, and any failure after that is raised
to the caller, which skips the repository.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from adoption_tracker.github.client import GitHubClient
from adoption_tracker.github.config import GitHubConfig
from adoption_tracker.github.exceptions import RateLimitedError
from adoption_tracker.github.schemas import AdoptionInfo, RepoDetails
from adoption_tracker.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]


async def retry_once_on_rate_limit(
    endpoint: str,
    call: Callable[[], Awaitable[T]],
    backoff_seconds: float,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """Await ``call``; on a rate limit, sleep and try one more time."""
    try:
        return await call()
    except RateLimitedError as e:
        logger.warning(
            "%s lookup rate limited (status %s), retrying once in %.0fs",
            endpoint, e.status_code, backoff_seconds,
        )
        get_metrics().record_rate_limit_wait(endpoint)
        await sleep(backoff_seconds)
    return await call()


class DetailFetcher:
    """Fetches stars, description, and language for a repository."""

    def __init__(
        self,
        client: GitHubClient,
        config: GitHubConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config or GitHubConfig()
        self._sleep = sleep

    async def fetch_details(self, repo_full_name: str) -> RepoDetails:
        return await retry_once_on_rate_limit(
            "repo",
            lambda: self._client.get_repo(repo_full_name),
            self._config.detail_backoff_seconds,
            self._sleep,
        )


class AdoptionLocator:
    """Finds when a repository first committed the matched file."""

    def __init__(
        self,
        client: GitHubClient,
        config: GitHubConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config or GitHubConfig()
        self._sleep = sleep

    async def locate_adoption(self, repo_full_name: str, path: str) -> AdoptionInfo:
        """Return the date and link of the earliest commit touching ``path``."""
        return await retry_once_on_rate_limit(
            "commits",
            lambda: self._client.get_first_commit(repo_full_name, path),
            self._config.detail_backoff_seconds,
            self._sleep,
        )
