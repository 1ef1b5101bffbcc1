"""
Prometheus metrics for the refresh pipeline.

Defines and exposes metrics for:
- Refresh runs and their duration
- GitHub API requests and rate-limit hits
- Project upserts and adoption backfill
- Notification delivery

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from adoption_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

# Refresh runs are long; GitHub calls are short
REFRESH_BUCKETS = (10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 900.0)
REQUEST_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the adoption tracker.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_refresh("completed", duration=312.5)
        metrics.record_github_request("search", "ok", latency=0.4)
    """

    def __init__(self):
        self.refresh_runs = Counter(
            "dhi_tracker_refresh_runs_total",
            "Refresh runs by outcome",
            ["status"],  # completed, failed, rejected
        )

        self.refresh_duration = Histogram(
            "dhi_tracker_refresh_duration_seconds",
            "Wall-clock duration of refresh runs",
            buckets=REFRESH_BUCKETS,
        )

        self.refresh_running = Gauge(
            "dhi_tracker_refresh_running",
            "1 while a refresh holds the single-flight guard",
        )

        self.github_requests = Counter(
            "dhi_tracker_github_requests_total",
            "GitHub API requests",
            ["endpoint", "outcome"],  # outcome: ok, rate_limited, transient, error
        )

        self.github_latency = Histogram(
            "dhi_tracker_github_request_latency_seconds",
            "GitHub API request latency",
            ["endpoint"],
            buckets=REQUEST_BUCKETS,
        )

        self.rate_limit_waits = Counter(
            "dhi_tracker_rate_limit_waits_total",
            "Back-off sleeps taken after a rate-limit signal",
            ["endpoint"],
        )

        self.projects_upserted = Counter(
            "dhi_tracker_projects_upserted_total",
            "Projects written by refresh runs",
        )

        self.adoptions_backfilled = Counter(
            "dhi_tracker_adoptions_backfilled_total",
            "Adoption dates filled in by the backfill phase",
            ["status"],  # set, skipped
        )

        self.projects_tracked = Gauge(
            "dhi_tracker_projects_tracked",
            "Projects in the store after the last snapshot",
        )

        self.notifications_sent = Counter(
            "dhi_tracker_notifications_total",
            "Notification delivery attempts",
            ["channel", "status"],
        )

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    def record_refresh(self, status: str, duration: float | None = None) -> None:
        """
        Record a finished refresh run.

        Args:
            status: Outcome label
            duration: Run duration in seconds
        """
        self.refresh_runs.labels(status=status).inc()
        if duration is not None:
            self.refresh_duration.observe(duration)

    def record_github_request(
        self,
        endpoint: str,
        outcome: str,
        latency: float | None = None,
    ) -> None:
        self.github_requests.labels(endpoint=endpoint, outcome=outcome).inc()
        if latency is not None:
            self.github_latency.labels(endpoint=endpoint).observe(latency)

    def record_rate_limit_wait(self, endpoint: str) -> None:
        self.rate_limit_waits.labels(endpoint=endpoint).inc()

    def record_notification(self, channel: str, status: str) -> None:
        self.notifications_sent.labels(channel=channel, status=status).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
