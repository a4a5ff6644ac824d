"""Prometheus series for repository statistics.

The series are registered once, against a registry created at process start
and shared with the scrape endpoint. Gauges are overwritten on every cycle;
the close-duration histogram only ever receives observations for issues that
closed since the previous cycle.
"""

import logging

from prometheus_client import CollectorRegistry, Gauge, Histogram

from ..stats.models import RepoMetricsSnapshot

logger = logging.getLogger(__name__)

REPO_LABEL_NAMES = ("owner", "repo")

OPEN_ISSUES = "repo_open_issues"
OPEN_PULL_REQUESTS = "repo_open_pull_requests"
STARS = "repo_stars"
FORKS = "repo_forks"
SUBSCRIBERS = "repo_subscribers"
ISSUE_CLOSE_DURATION = "repo_issue_close_duration"

# 1 hour, 1 day, 1 week, 2 weeks, 4 weeks, 8 weeks, 16 weeks
ISSUE_CLOSE_DURATION_BUCKETS = (60, 1_440, 10_080, 20_160, 40_320, 80_640, 161_280)

GAUGE_DESCRIPTIONS = {
    OPEN_ISSUES: "Number of open issues",
    OPEN_PULL_REQUESTS: "Number of open pull requests",
    STARS: "Number of stars",
    FORKS: "Number of forks",
    SUBSCRIBERS: "Number of subscribers",
}


class RepoMetricsPublisher:
    """Owns the repository series and writes snapshots into them."""

    def __init__(self, registry: CollectorRegistry, namespace: str = ""):
        """Register all series with ``registry``.

        Args:
            registry: Registry served by the scrape endpoint
            namespace: Optional prefix joined to every series name with ``_``

        Raises:
            ValueError: If the series are already registered in ``registry``
        """
        self.registry = registry
        self.namespace = namespace

        self._gauges: dict[str, Gauge] = {
            name: Gauge(
                name,
                description,
                REPO_LABEL_NAMES,
                namespace=namespace,
                registry=registry,
            )
            for name, description in GAUGE_DESCRIPTIONS.items()
        }
        self._histograms: dict[str, Histogram] = {
            ISSUE_CLOSE_DURATION: Histogram(
                ISSUE_CLOSE_DURATION,
                "Duration from issue open to close in minutes",
                REPO_LABEL_NAMES,
                namespace=namespace,
                registry=registry,
                buckets=ISSUE_CLOSE_DURATION_BUCKETS,
            )
        }

    def series_name(self, name: str) -> str:
        """Full exported name of a series."""
        return f"{self.namespace}_{name}" if self.namespace else name

    def set_gauge(self, name: str, labels: dict[str, str], value: float) -> None:
        """Overwrite the gauge value for a label set."""
        try:
            gauge = self._gauges[name]
        except KeyError:
            raise ValueError(f"Unknown gauge: {name}") from None
        gauge.labels(**labels).set(value)

    def observe_histogram(
        self, name: str, labels: dict[str, str], duration_minutes: float
    ) -> None:
        """Record one observation for a label set."""
        try:
            histogram = self._histograms[name]
        except KeyError:
            raise ValueError(f"Unknown histogram: {name}") from None
        histogram.labels(**labels).observe(duration_minutes)

    def publish(self, owner: str, repo: str, snapshot: RepoMetricsSnapshot) -> None:
        """Write a full snapshot for ``owner/repo``.

        Runs without suspension points, so a started publication always
        completes even if the surrounding task is cancelled.
        """
        labels = {"owner": owner, "repo": repo}

        self.set_gauge(OPEN_ISSUES, labels, snapshot.open_issues)
        self.set_gauge(OPEN_PULL_REQUESTS, labels, snapshot.open_pull_requests)
        self.set_gauge(STARS, labels, snapshot.stars)
        self.set_gauge(FORKS, labels, snapshot.forks)
        self.set_gauge(SUBSCRIBERS, labels, snapshot.subscribers)

        for duration in snapshot.closed_issue_durations:
            self.observe_histogram(
                ISSUE_CLOSE_DURATION, labels, duration.total_seconds() / 60
            )

        logger.debug(f"Published {owner}/{repo}: {snapshot}")
