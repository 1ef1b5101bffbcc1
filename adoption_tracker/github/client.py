"""
Async GitHub REST client.

Wraps ``httpx.AsyncClient`` and maps every failure onto the error
taxonomy in ``adoption_tracker.github.exceptions``:

- 403 / 429: RateLimitedError (GitHub uses 403 for secondary limits)
- 5xx, timeouts, transport errors: TransientApiError
- other 4xx, undecodable bodies: UnrecoverableApiError

The client never sleeps or retries; pacing and retry policy belong to
the crawler and the detail/adoption lookups.
"""

import logging
import time
from datetime import datetime
from typing import Any

import httpx

from adoption_tracker.github.exceptions import (
    RateLimitedError,
    TransientApiError,
    UnrecoverableApiError,
)
from adoption_tracker.github.schemas import AdoptionInfo, RepoDetails, SearchHit, SearchPage
from adoption_tracker.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
RATE_LIMIT_STATUSES = frozenset({403, 429})


def _retry_after(response: httpx.Response) -> float | None:
    """Seconds until GitHub expects requests again, if it says so."""
    value = response.headers.get("Retry-After")
    if value:
        try:
            return max(float(value), 0.0)
        except ValueError:
            pass
    reset = response.headers.get("X-RateLimit-Reset")
    if reset:
        try:
            return max(float(reset) - time.time(), 0.0)
        except ValueError:
            pass
    return None


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubClient:
    """
    Minimal GitHub REST client for code search, repository details,
    and per-file commit history.

    Example:
        async with GitHubClient(token) as gh:
            page = await gh.search_code('"dhi.io" language:Dockerfile', page=1)
            details = await gh.get_repo("owner/name")
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "GitHubClient":
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._headers(),
            )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": "dhi-adoption-tracker",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get(
        self,
        endpoint: str,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET ``url`` and classify the outcome.

        Args:
            endpoint: Metrics label (search, repo, commits)
            url: Path relative to the API root, or an absolute URL
            params: Query parameters
        """
        if self._client is None:
            raise RuntimeError("GitHubClient must be used as async context manager")

        metrics = get_metrics()
        start = time.perf_counter()
        try:
            response = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            metrics.record_github_request(endpoint, "transient")
            raise TransientApiError(f"GitHub {endpoint} request timed out: {e}") from e
        except httpx.TransportError as e:
            metrics.record_github_request(endpoint, "transient")
            raise TransientApiError(f"GitHub {endpoint} request failed: {e}") from e
        latency = time.perf_counter() - start

        status = response.status_code
        if status in RATE_LIMIT_STATUSES:
            metrics.record_github_request(endpoint, "rate_limited", latency)
            raise RateLimitedError(
                f"GitHub {endpoint} rate limited ({status})",
                status_code=status,
                response_body=response.text,
                retry_after=_retry_after(response),
            )
        if status >= 500:
            metrics.record_github_request(endpoint, "transient", latency)
            raise TransientApiError(
                f"GitHub {endpoint} returned {status}",
                status_code=status,
                response_body=response.text,
            )
        if status >= 400:
            metrics.record_github_request(endpoint, "error", latency)
            raise UnrecoverableApiError(
                f"GitHub {endpoint} returned {status}",
                status_code=status,
                response_body=response.text,
            )

        metrics.record_github_request(endpoint, "ok", latency)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UnrecoverableApiError(
                f"Invalid JSON from GitHub: {e}",
                status_code=response.status_code,
                response_body=response.text,
            ) from e

    async def search_code(self, query: str, page: int, per_page: int = 100) -> SearchPage:
        """Fetch one page of code-search results."""
        response = await self._get(
            "search",
            "/search/code",
            params={"q": query, "per_page": per_page, "page": page},
        )
        data = self._json(response)
        try:
            hits = [
                SearchHit(
                    repo_full_name=item["repository"]["full_name"],
                    repo_url=item["repository"].get("html_url", ""),
                    path=item["path"],
                    file_url=item.get("html_url", ""),
                )
                for item in data.get("items", [])
            ]
            return SearchPage(
                total_count=int(data.get("total_count", 0)),
                hits=hits,
                incomplete_results=bool(data.get("incomplete_results", False)),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise UnrecoverableApiError(f"Malformed search response: {e}") from e

    async def get_repo(self, full_name: str) -> RepoDetails:
        """Fetch repository metadata."""
        response = await self._get("repo", f"/repos/{full_name}")
        data = self._json(response)
        try:
            return RepoDetails(
                full_name=data["full_name"],
                url=data["html_url"],
                stars=int(data.get("stargazers_count") or 0),
                description=data.get("description") or "",
                language=data.get("language") or "",
            )
        except (KeyError, TypeError) as e:
            raise UnrecoverableApiError(f"Malformed repository response: {e}") from e

    async def get_first_commit(self, full_name: str, path: str) -> AdoptionInfo:
        """Find the earliest commit touching ``path``.

        Commits come newest first. With one commit per page, the page
        linked as ``rel="last"`` holds the oldest one.
        """
        endpoint = f"/repos/{full_name}/commits"
        response = await self._get(
            "commits", endpoint, params={"path": path, "per_page": 1}
        )
        last = response.links.get("last")
        if last and last.get("url"):
            response = await self._get("commits", last["url"])

        commits = self._json(response)
        if not isinstance(commits, list) or not commits:
            raise UnrecoverableApiError(f"No commits found for {full_name}:{path}")

        commit = commits[-1]
        try:
            return AdoptionInfo(
                date=_parse_timestamp(commit["commit"]["author"]["date"]),
                commit_url=commit["html_url"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UnrecoverableApiError(f"Malformed commit response: {e}") from e


