"""GitHub API client package."""

from .auth import (
    AnonymousAuth,
    AnonymousCredential,
    AuthProvider,
    AuthToken,
    Credential,
    TokenAuth,
    TokenCredential,
    auth_from_credential,
)
from .client import GitHubClient, GitHubClientConfig
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubNotFoundError,
    GitHubPaginationError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)
from .pagination import AsyncPaginator, LinkHeader, PaginatedResponse
from .rate_limiting import RateLimitInfo, RateLimitManager

__all__ = [
    "AnonymousAuth",
    "AnonymousCredential",
    "AsyncPaginator",
    "AuthProvider",
    "AuthToken",
    "Credential",
    "GitHubAuthenticationError",
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubConnectionError",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubPaginationError",
    "GitHubRateLimitError",
    "GitHubServerError",
    "GitHubTimeoutError",
    "GitHubValidationError",
    "LinkHeader",
    "PaginatedResponse",
    "RateLimitInfo",
    "RateLimitManager",
    "TokenAuth",
    "TokenCredential",
    "auth_from_credential",
]
