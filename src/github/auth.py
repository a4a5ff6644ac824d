"""GitHub authentication handlers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from .exceptions import GitHubAuthenticationError


@dataclass(frozen=True)
class AnonymousCredential:
    """No credential: requests are made without an Authorization header."""


@dataclass(frozen=True)
class TokenCredential:
    """Opaque token bytes fetched from a secret store."""

    token: bytes = field(repr=False)


Credential = AnonymousCredential | TokenCredential


@dataclass
class AuthToken:
    """Authentication token with metadata."""

    token: str
    token_type: str = "token"

    def to_header(self) -> dict[str, str]:
        """Convert to authorization header."""
        return {"Authorization": f"{self.token_type} {self.token}"}


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @property
    @abstractmethod
    def is_authenticated(self) -> bool:
        """Whether requests carry credentials."""
        pass

    @abstractmethod
    async def get_token(self) -> AuthToken | None:
        """Get authentication token, or None for anonymous access."""
        pass


class AnonymousAuth(AuthProvider):
    """Unauthenticated access, subject to the anonymous API quota."""

    @property
    def is_authenticated(self) -> bool:
        return False

    async def get_token(self) -> AuthToken | None:
        return None


class TokenAuth(AuthProvider):
    """Static token authentication (personal access or installation token)."""

    DEFAULT_TOKEN_TYPE = "token"  # nosec B105

    def __init__(self, token: str, token_type: str | None = None):
        """Initialize token authentication.

        Args:
            token: GitHub token
            token_type: Authorization scheme. Uses ``token`` by default.

        Raises:
            GitHubAuthenticationError: If the token is empty
        """
        if not token:
            raise GitHubAuthenticationError("GitHub token is required")
        if token_type is None:
            token_type = self.DEFAULT_TOKEN_TYPE
        self._token = AuthToken(token=token, token_type=token_type)

    @property
    def is_authenticated(self) -> bool:
        return True

    async def get_token(self) -> AuthToken | None:
        return self._token


def auth_from_credential(credential: Credential) -> AuthProvider:
    """Build the authentication provider matching a resolved credential.

    Args:
        credential: Credential resolved for the current reconcile cycle

    Returns:
        AuthProvider for the GitHub client

    Raises:
        GitHubAuthenticationError: If the token bytes are not valid UTF-8
    """
    if isinstance(credential, TokenCredential):
        try:
            token = credential.token.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise GitHubAuthenticationError(
                "GitHub token is not valid UTF-8"
            ) from e
        return TokenAuth(token)
    return AnonymousAuth()
