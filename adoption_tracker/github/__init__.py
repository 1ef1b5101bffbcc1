"""GitHub access: REST client, search crawler, and detail/adoption lookups."""

from adoption_tracker.github.client import GitHubClient
from adoption_tracker.github.config import GitHubConfig
from adoption_tracker.github.crawler import SearchCrawler
from adoption_tracker.github.details import AdoptionLocator, DetailFetcher
from adoption_tracker.github.exceptions import (
    GitHubError,
    RateLimitedError,
    TransientApiError,
    UnrecoverableApiError,
)
from adoption_tracker.github.schemas import AdoptionInfo, RepoDetails, SearchHit, SearchPage

__all__ = [
    "AdoptionInfo",
    "AdoptionLocator",
    "DetailFetcher",
    "GitHubClient",
    "GitHubConfig",
    "GitHubError",
    "RateLimitedError",
    "RepoDetails",
    "SearchCrawler",
    "SearchHit",
    "SearchPage",
    "TransientApiError",
    "UnrecoverableApiError",
]
