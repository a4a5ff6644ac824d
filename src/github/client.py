"""GitHub API client with authentication, rate limit tracking, and pagination."""

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import aiohttp

from .auth import AuthProvider
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)
from .pagination import (
    DEFAULT_MAX_PAGES,
    DEFAULT_PER_PAGE,
    AsyncPaginator,
    PaginatedResponse,
)
from .rate_limiting import RateLimitManager

logger = logging.getLogger(__name__)


def _header_int(headers: Mapping[str, str], name: str) -> int | None:
    """Integer value of a response header, None when absent or malformed."""
    value = headers.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.debug(f"Ignoring malformed {name} header: {value!r}")
        return None


@dataclass
class GitHubClientConfig:
    """Configuration for GitHub client."""

    base_url: str = "https://api.github.com"
    timeout: float | None = 15.0  # Total request timeout, None for no limit
    user_agent: str = "repo-stats-exporter/1.0"
    per_page: int = DEFAULT_PER_PAGE
    max_pages: int = DEFAULT_MAX_PAGES


class GitHubClient:
    """Async GitHub API client.

    Every request is attempted once. Failures surface as GitHubError
    subclasses and retrying is left to the caller.
    """

    def __init__(
        self,
        auth: AuthProvider,
        config: GitHubClientConfig | None = None,
        rate_limiter: RateLimitManager | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            auth: Authentication provider
            config: Client configuration
            rate_limiter: Quota tracker shared by clients using the same credential
        """
        self.auth = auth
        self.config = config or GitHubClientConfig()
        self.rate_limiter = rate_limiter or RateLimitManager()

        # HTTP session will be initialized on first use
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is initialized."""
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    timeout = aiohttp.ClientTimeout(total=self.config.timeout)

                    self._session = aiohttp.ClientSession(
                        timeout=timeout,
                        headers={
                            "User-Agent": self.config.user_agent,
                            "Accept": "application/vnd.github+json",
                        },
                    )

    async def close(self) -> None:
        """Close HTTP session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _generate_correlation_id(self) -> str:
        """Generate correlation ID for request tracking."""
        return str(uuid.uuid4())[:8]

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> tuple[Any, dict[str, str]]:
        """Make a single HTTP request and decode its JSON body.

        Args:
            method: HTTP method
            url: Request URL
            params: Query parameters

        Returns:
            Tuple of decoded JSON body and response headers

        Raises:
            GitHubError: Various GitHub API errors
        """
        correlation_id = self._generate_correlation_id()

        self.rate_limiter.check_rate_limit()

        request_headers: dict[str, str] = {}
        auth_token = await self.auth.get_token()
        if auth_token is not None:
            request_headers.update(auth_token.to_header())

        await self._ensure_session()
        if not self._session:
            raise GitHubConnectionError("Failed to initialize HTTP session")

        start_time = time.time()
        logger.debug(f"GitHub API request [{correlation_id}] {method} {url}")

        try:
            async with self._session.request(
                method, url, params=params, headers=request_headers
            ) as response:
                headers = dict(response.headers)
                self.rate_limiter.update_rate_limit(headers)

                logger.debug(
                    f"GitHub API response [{correlation_id}] "
                    f"{response.status} in {time.time() - start_time:.2f}s"
                )

                if response.status not in (200, 201, 204):
                    await self._handle_error_response(response, correlation_id)

                if response.status == 204:
                    return None, headers
                return await response.json(), headers

        except GitHubError:
            raise
        except TimeoutError as e:
            raise GitHubTimeoutError(f"Request timeout for {method} {url}") from e
        except aiohttp.ContentTypeError as e:
            raise GitHubError(f"Unexpected content type for {method} {url}") from e
        except aiohttp.ClientError as e:
            raise GitHubConnectionError(
                f"Connection error for {method} {url}: {e}"
            ) from e

    async def _handle_error_response(
        self, response: aiohttp.ClientResponse, correlation_id: str
    ) -> None:
        """Handle error responses from GitHub API.

        Args:
            response: HTTP response
            correlation_id: Request correlation ID

        Raises:
            GitHubError: Appropriate error based on status code
        """
        try:
            error_data = await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError):
            error_data = {"message": await response.text()}
        if not isinstance(error_data, dict):
            error_data = {"message": str(error_data)}

        error_message = error_data.get("message") or f"HTTP {response.status}"

        logger.warning(
            f"GitHub API error [{correlation_id}] {response.status}: {error_message}"
        )

        if response.status == 401:
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status in (403, 429):
            if response.status == 429 or "rate limit" in error_message.lower():
                raise GitHubRateLimitError(
                    error_message,
                    reset_time=_header_int(response.headers, "X-RateLimit-Reset"),
                    remaining=_header_int(response.headers, "X-RateLimit-Remaining")
                    or 0,
                    limit=_header_int(response.headers, "X-RateLimit-Limit") or 0,
                )
            else:
                raise GitHubAuthenticationError(
                    error_message, response.status, error_data
                )
        elif response.status == 404:
            raise GitHubNotFoundError(error_message, response.status, error_data)
        elif response.status == 422:
            raise GitHubValidationError(error_message, response.status, error_data)
        elif 500 <= response.status < 600:
            raise GitHubServerError(error_message, response.status, error_data)
        else:
            raise GitHubError(error_message, response.status, error_data)

    def _url(self, path: str) -> str:
        return urljoin(self.config.base_url.rstrip("/") + "/", path.lstrip("/"))

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make GET request to GitHub API.

        Args:
            path: API path (e.g., '/repos/owner/repo')
            params: Query parameters

        Returns:
            JSON response data
        """
        data, _ = await self._request("GET", self._url(path), params)
        if not isinstance(data, dict):
            raise GitHubError(f"Expected a JSON object from {path}")
        return data

    async def _fetch_paginated(
        self, url: str, params: dict[str, Any] | None = None
    ) -> PaginatedResponse:
        """Fetch paginated response (used by AsyncPaginator).

        Args:
            url: URL to fetch
            params: Query parameters

        Returns:
            PaginatedResponse with data and headers
        """
        data, headers = await self._request("GET", url, params)
        if not isinstance(data, list):
            raise GitHubError(f"Expected a JSON array from {url}")
        return PaginatedResponse(data, headers, url)

    def paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> AsyncPaginator:
        """Create async paginator for GitHub API endpoint.

        Args:
            path: API path
            params: Query parameters

        Returns:
            AsyncPaginator for iterating through results
        """
        return AsyncPaginator(
            client=self,
            initial_url=self._url(path),
            params=params,
            per_page=self.config.per_page,
            max_pages=self.config.max_pages,
        )

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any]:
        """Get repository information.

        Args:
            owner: Repository owner
            repo: Repository name

        Returns:
            Repository data
        """
        return await self.get(f"/repos/{owner}/{repo}")

    def list_pulls(self, owner: str, repo: str, state: str = "open") -> AsyncPaginator:
        """List pull requests for a repository.

        Args:
            owner: Repository owner
            repo: Repository name
            state: PR state (open, closed, all)

        Returns:
            AsyncPaginator for pull requests
        """
        return self.paginate(f"/repos/{owner}/{repo}/pulls", params={"state": state})

    def list_issues(self, owner: str, repo: str, state: str = "all") -> AsyncPaginator:
        """List issues for a repository.

        GitHub returns pull requests from this endpoint as well; callers that
        want issues only must drop items carrying a ``pull_request`` key.

        Args:
            owner: Repository owner
            repo: Repository name
            state: Issue state (open, closed, all)

        Returns:
            AsyncPaginator for issues
        """
        return self.paginate(f"/repos/{owner}/{repo}/issues", params={"state": state})
