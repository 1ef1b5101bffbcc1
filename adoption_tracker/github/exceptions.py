"""GitHub API error taxonomy.

``RateLimitedError`` is retryable and handled by the caller's back-off
policy. ``TransientApiError`` skips the current unit of work.
``UnrecoverableApiError`` aborts the current phase.
"""


class GitHubError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitedError(GitHubError):
    """GitHub answered with a rate-limit signal (403 or 429)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, status_code, response_body)
        self.retry_after = retry_after


class TransientApiError(GitHubError):
    """Server error, timeout, or dropped connection."""


class UnrecoverableApiError(GitHubError):
    """Client error or a payload we cannot interpret."""
