"""Aggregation of fetched repository data into a metrics snapshot."""

from collections.abc import Sequence
from datetime import datetime, timedelta

from .models import (
    IssueRecord,
    PullRequestRecord,
    RepoData,
    RepoMetricsSnapshot,
    RepoSummary,
)


def closed_since(
    issues: Sequence[IssueRecord], last_synced_at: datetime | None
) -> list[IssueRecord]:
    """Issues that closed strictly after ``last_synced_at``.

    Without a previous sync there is no baseline, so nothing counts as newly
    closed. An issue closed exactly at ``last_synced_at`` was already recorded
    by the cycle that set it.
    """
    if last_synced_at is None:
        return []
    return [
        issue
        for issue in issues
        if issue.is_closed
        and issue.closed_at is not None
        and issue.closed_at > last_synced_at
    ]


def aggregate(
    issues: Sequence[IssueRecord],
    pull_requests: Sequence[PullRequestRecord],
    summary: RepoSummary,
    last_synced_at: datetime | None,
) -> RepoMetricsSnapshot:
    """Build the metrics snapshot for one reconcile cycle.

    Args:
        issues: Issues in all states, pull requests already excluded
        pull_requests: Open pull requests
        summary: Repository summary counters
        last_synced_at: Completion time of the previous successful cycle

    Returns:
        RepoMetricsSnapshot for publication
    """
    durations: list[timedelta] = [
        issue.closed_at - issue.created_at
        for issue in closed_since(issues, last_synced_at)
        if issue.closed_at is not None
    ]
    return RepoMetricsSnapshot(
        open_issues=sum(1 for issue in issues if issue.is_open),
        open_pull_requests=len(pull_requests),
        stars=summary.stars,
        forks=summary.forks,
        subscribers=summary.subscribers,
        closed_issue_durations=tuple(durations),
    )


def aggregate_repo_data(
    data: RepoData, last_synced_at: datetime | None
) -> RepoMetricsSnapshot:
    """Aggregate a fetched RepoData bundle."""
    return aggregate(data.issues, data.pull_requests, data.summary, last_synced_at)
