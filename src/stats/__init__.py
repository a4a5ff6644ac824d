"""Repository statistics: fetching from GitHub and aggregation into snapshots."""

from .aggregator import aggregate, aggregate_repo_data, closed_since
from .fetcher import GitHubClientFactory, RepoStatsFetcher, is_pull_request
from .models import (
    IssueRecord,
    PullRequestRecord,
    RepoData,
    RepoMetricsSnapshot,
    RepoSummary,
    parse_timestamp,
)

__all__ = [
    "GitHubClientFactory",
    "IssueRecord",
    "PullRequestRecord",
    "RepoData",
    "RepoMetricsSnapshot",
    "RepoStatsFetcher",
    "RepoSummary",
    "aggregate",
    "aggregate_repo_data",
    "closed_since",
    "is_pull_request",
    "parse_timestamp",
]
