"""Prometheus publication of repository statistics."""

from .exporter import start_metrics_server
from .publisher import (
    FORKS,
    ISSUE_CLOSE_DURATION,
    ISSUE_CLOSE_DURATION_BUCKETS,
    OPEN_ISSUES,
    OPEN_PULL_REQUESTS,
    REPO_LABEL_NAMES,
    STARS,
    SUBSCRIBERS,
    RepoMetricsPublisher,
)

__all__ = [
    "FORKS",
    "ISSUE_CLOSE_DURATION",
    "ISSUE_CLOSE_DURATION_BUCKETS",
    "OPEN_ISSUES",
    "OPEN_PULL_REQUESTS",
    "REPO_LABEL_NAMES",
    "STARS",
    "SUBSCRIBERS",
    "RepoMetricsPublisher",
    "start_metrics_server",
]
