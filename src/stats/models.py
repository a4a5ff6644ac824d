"""Data models for repository statistics.

Records parsed from GitHub API payloads and the per-cycle snapshot handed to
the metric publisher. All models are frozen: a snapshot is built once per
reconcile cycle and never mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp as returned by the GitHub API."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class RepoSummary:
    """Summary counters from the repository endpoint."""

    stars: int
    forks: int
    subscribers: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RepoSummary":
        return cls(
            stars=int(data.get("stargazers_count") or 0),
            forks=int(data.get("forks_count") or 0),
            subscribers=int(data.get("subscribers_count") or 0),
        )


@dataclass(frozen=True)
class IssueRecord:
    """An issue as listed by the issues endpoint."""

    number: int
    state: str
    created_at: datetime
    closed_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "IssueRecord":
        created_at = parse_timestamp(data.get("created_at"))
        if created_at is None:
            raise ValueError(f"Issue #{data.get('number')} has no created_at")
        return cls(
            number=int(data["number"]),
            state=str(data.get("state", "")),
            created_at=created_at,
            closed_at=parse_timestamp(data.get("closed_at")),
        )


@dataclass(frozen=True)
class PullRequestRecord:
    """An open pull request as listed by the pulls endpoint."""

    number: int
    state: str = "open"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PullRequestRecord":
        return cls(number=int(data["number"]), state=str(data.get("state", "open")))


@dataclass(frozen=True)
class RepoData:
    """Everything fetched from GitHub for one repository in one cycle."""

    summary: RepoSummary
    issues: tuple[IssueRecord, ...] = ()
    pull_requests: tuple[PullRequestRecord, ...] = ()


@dataclass(frozen=True)
class RepoMetricsSnapshot:
    """Metric values for one repository, produced fresh each cycle."""

    open_issues: int = 0
    open_pull_requests: int = 0
    stars: int = 0
    forks: int = 0
    subscribers: int = 0
    closed_issue_durations: tuple[timedelta, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        """Return human-readable string representation."""
        return (
            f"RepoMetricsSnapshot(open_issues={self.open_issues}, "
            f"open_pull_requests={self.open_pull_requests}, stars={self.stars}, "
            f"forks={self.forks}, subscribers={self.subscribers}, "
            f"newly_closed={len(self.closed_issue_durations)})"
        )
