"""In-memory resource and secret stores.

Used when no database is configured: the stores are seeded from the
configuration file at startup.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import replace

from ..reconciler.exceptions import ResourceNotFoundError
from ..reconciler.interfaces import ResourceStore, SecretStore
from ..reconciler.models import RepoSpec, RepoStatus, ResourceKey, WatchedRepository

logger = logging.getLogger(__name__)


class InMemoryResourceStore(ResourceStore):
    """Dict-backed resource store with change notification."""

    def __init__(self) -> None:
        self._items: dict[ResourceKey, WatchedRepository] = {}
        self._subscribers: list[asyncio.Queue[ResourceKey]] = []

    def _notify(self, key: ResourceKey) -> None:
        for queue in self._subscribers:
            queue.put_nowait(key)

    async def put(self, key: ResourceKey, spec: RepoSpec) -> WatchedRepository:
        """Create a resource or replace its spec.

        The generation is bumped, and watchers notified, only when the spec
        actually changes.
        """
        existing = self._items.get(key)
        if existing is not None and existing.spec == spec:
            return existing

        if existing is None:
            repo = WatchedRepository(key=key, spec=spec)
        else:
            repo = replace(existing, spec=spec, generation=existing.generation + 1)

        self._items[key] = repo
        self._notify(key)
        return repo

    async def delete(self, key: ResourceKey) -> bool:
        """Delete a resource. Returns True if it existed."""
        if self._items.pop(key, None) is None:
            return False
        self._notify(key)
        return True

    async def get(self, key: ResourceKey) -> WatchedRepository | None:
        return self._items.get(key)

    async def update_status(
        self, key: ResourceKey, status: RepoStatus
    ) -> WatchedRepository:
        existing = self._items.get(key)
        if existing is None:
            raise ResourceNotFoundError(f"Repo {key} not found")

        repo = replace(existing, status=status)
        self._items[key] = repo
        return repo

    async def list_keys(self) -> list[ResourceKey]:
        return sorted(self._items)

    async def watch(self) -> AsyncIterator[ResourceKey]:
        queue: asyncio.Queue[ResourceKey] = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(queue)


class InMemorySecretStore(SecretStore):
    """Dict-backed secret store."""

    def __init__(self, secrets: dict[tuple[str, str], dict[str, bytes]] | None = None):
        self._secrets: dict[tuple[str, str], dict[str, bytes]] = dict(secrets or {})

    async def put_secret(
        self, namespace: str, name: str, data: dict[str, bytes]
    ) -> None:
        self._secrets[(namespace, name)] = dict(data)

    async def get_secret(self, namespace: str, name: str) -> dict[str, bytes] | None:
        secret = self._secrets.get((namespace, name))
        return dict(secret) if secret is not None else None
