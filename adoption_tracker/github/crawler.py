"""Paginated code-search crawl.

Code search allows roughly ten requests per minute and never returns
more than 1000 results, so the crawler walks pages sequentially with a
fixed delay between them and stops at the page ceiling. A rate-limited
page is retried in place after a fixed back-off for as long as the
caller lets the crawl run; cancelling the awaiting task is the only way
to bound that loop.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from adoption_tracker.github.client import GitHubClient
from adoption_tracker.github.config import GitHubConfig
from adoption_tracker.github.exceptions import RateLimitedError
from adoption_tracker.github.schemas import SearchHit
from adoption_tracker.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
SleepFn = Callable[[float], Awaitable[None]]


class SearchCrawler:
    """Collects one search hit per repository for the configured query."""

    def __init__(
        self,
        client: GitHubClient,
        config: GitHubConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config or GitHubConfig()
        self._sleep = sleep

    async def crawl(
        self,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, SearchHit]:
        """Walk the search results and deduplicate them by repository.

        Args:
            on_progress: Called with (unique repositories, page) after each page.

        Returns:
            Mapping of ``owner/name`` to the first hit seen for that repository.

        Raises:
            TransientApiError, UnrecoverableApiError: Any non-rate-limit failure.
        """
        query = self._config.search_query
        per_page = self._config.per_page
        max_pages = self._config.max_pages
        found: dict[str, SearchHit] = {}
        page = 1

        while True:
            try:
                result = await self._client.search_code(query, page=page, per_page=per_page)
            except RateLimitedError as e:
                logger.warning(
                    "Search rate limited on page %d (status %s), retrying in %.0fs",
                    page, e.status_code, self._config.search_backoff_seconds,
                )
                get_metrics().record_rate_limit_wait("search")
                await self._sleep(self._config.search_backoff_seconds)
                continue

            for hit in result.hits:
                # First path wins; later hits for the same repo are ignored
                found.setdefault(hit.repo_full_name, hit)

            logger.info(
                "Search page %d: %d hits, %d unique repositories (total_count=%d)",
                page, len(result.hits), len(found), result.total_count,
            )
            if on_progress is not None:
                on_progress(len(found), page)

            if len(result.hits) < per_page:
                break
            if page * per_page >= result.total_count:
                break
            if page >= max_pages:
                logger.info(
                    "Reached search ceiling of %d pages (%d results); stopping",
                    max_pages, max_pages * per_page,
                )
                break

            await self._sleep(self._config.search_delay_seconds)
            page += 1

        return found
