"""Fetching repository statistics from the GitHub API."""

import hashlib
import logging
from dataclasses import replace
from typing import Any

from ..github.auth import Credential, TokenCredential, auth_from_credential
from ..github.client import GitHubClient, GitHubClientConfig
from ..github.exceptions import GitHubError
from ..github.rate_limiting import RateLimitManager
from .models import IssueRecord, PullRequestRecord, RepoData, RepoSummary

logger = logging.getLogger(__name__)


def is_pull_request(item: dict[str, Any]) -> bool:
    """Check whether an issues-endpoint item is backed by a pull request."""
    return item.get("pull_request") is not None


class GitHubClientFactory:
    """Builds a GitHub client for the credential resolved in a reconcile cycle.

    Anonymous clients get a short fixed timeout because the anonymous quota is
    small; authenticated clients use ``authenticated_timeout`` (None relies on
    task cancellation instead). Quota tracking is shared per credential.
    """

    ANONYMOUS_KEY = "anonymous"

    def __init__(
        self,
        config: GitHubClientConfig | None = None,
        anonymous_timeout: float = 15.0,
        authenticated_timeout: float | None = None,
        rate_limit_buffer: int = 0,
    ):
        self.config = config or GitHubClientConfig()
        self.anonymous_timeout = anonymous_timeout
        self.authenticated_timeout = authenticated_timeout
        self.rate_limit_buffer = rate_limit_buffer
        self._rate_limiters: dict[str, RateLimitManager] = {}

    def _rate_limiter_for(self, credential: Credential) -> RateLimitManager:
        if isinstance(credential, TokenCredential):
            key = hashlib.sha256(credential.token).hexdigest()[:16]
        else:
            key = self.ANONYMOUS_KEY
        if key not in self._rate_limiters:
            self._rate_limiters[key] = RateLimitManager(buffer=self.rate_limit_buffer)
        return self._rate_limiters[key]

    def create(self, credential: Credential) -> GitHubClient:
        """Create a client authenticated with ``credential``."""
        auth = auth_from_credential(credential)
        timeout = (
            self.authenticated_timeout
            if auth.is_authenticated
            else self.anonymous_timeout
        )
        return GitHubClient(
            auth=auth,
            config=replace(self.config, timeout=timeout),
            rate_limiter=self._rate_limiter_for(credential),
        )


class RepoStatsFetcher:
    """Fetches the summary, open pull requests and issues of a repository.

    Calls are made one after another. Any failure aborts the whole fetch;
    a partially fetched repository is never returned.
    """

    def __init__(self, client: GitHubClient):
        self.client = client

    async def fetch(self, owner: str, name: str) -> RepoData:
        """Fetch everything needed to aggregate metrics for ``owner/name``.

        Raises:
            GitHubError: On any API failure or malformed payload
        """
        repo = await self.client.get_repo(owner, name)
        raw_pulls = await self.client.list_pulls(owner, name, state="open").collect_all()
        raw_issues = await self.client.list_issues(owner, name, state="all").collect_all()

        issue_items = [item for item in raw_issues if not is_pull_request(item)]

        try:
            data = RepoData(
                summary=RepoSummary.from_api(repo),
                issues=tuple(IssueRecord.from_api(item) for item in issue_items),
                pull_requests=tuple(
                    PullRequestRecord.from_api(item) for item in raw_pulls
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GitHubError(f"Malformed payload for {owner}/{name}: {e}") from e

        logger.debug(
            f"Fetched {owner}/{name}: {len(data.pull_requests)} open pull requests, "
            f"{len(data.issues)} issues "
            f"({len(raw_issues) - len(issue_items)} pull requests skipped)"
        )
        return data
