"""Abstract interfaces for the stores the reconciler depends on.

The reconciler only reads watched repositories, writes their status and
resolves credential secrets. Implementations live in ``src.store``.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from .models import RepoStatus, ResourceKey, WatchedRepository


class ResourceStore(ABC):
    """Store of watched repository resources."""

    @abstractmethod
    async def get(self, key: ResourceKey) -> WatchedRepository | None:
        """Get a resource by key, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_status(
        self, key: ResourceKey, status: RepoStatus
    ) -> WatchedRepository:
        """Replace the status of a resource without touching its spec.

        Raises:
            ResourceNotFoundError: If the resource no longer exists
            ResourceStoreError: If the store cannot be updated
        """
        pass

    @abstractmethod
    async def list_keys(self) -> list[ResourceKey]:
        """List the keys of all resources."""
        pass

    @abstractmethod
    def watch(self) -> AsyncIterator[ResourceKey]:
        """Yield keys whose spec changed, including created and deleted ones.

        Status updates do not produce notifications.
        """
        pass


class SecretStore(ABC):
    """Store of opaque credential secrets."""

    @abstractmethod
    async def get_secret(self, namespace: str, name: str) -> dict[str, bytes] | None:
        """Get the data of a secret, or None if it does not exist."""
        pass
