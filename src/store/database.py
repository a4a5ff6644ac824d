"""Database-backed resource and secret stores."""

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..reconciler.exceptions import ResourceNotFoundError, ResourceStoreError
from ..reconciler.interfaces import ResourceStore, SecretStore
from ..reconciler.models import RepoSpec, RepoStatus, ResourceKey, WatchedRepository
from .models import CredentialSecretRecord, WatchedRepositoryRecord

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops the offset of timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_model(record: WatchedRepositoryRecord) -> WatchedRepository:
    return WatchedRepository(
        key=ResourceKey(namespace=record.namespace, name=record.name),
        spec=RepoSpec(
            owner=record.owner,
            name=record.repo,
            credential_ref=record.credential_ref,
        ),
        status=RepoStatus(
            state=record.state, last_synced_at=_as_utc(record.last_synced_at)
        ),
        generation=record.generation,
    )


def _key_filter(key: ResourceKey) -> tuple:
    return (
        WatchedRepositoryRecord.namespace == key.namespace,
        WatchedRepositoryRecord.name == key.name,
    )


class SqlResourceStore(ResourceStore):
    """Resource store over the ``watched_repositories`` table.

    Spec changes are detected by polling the generation column every
    ``poll_interval`` seconds.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        poll_interval: float = 10.0,
    ):
        self.session_factory = session_factory
        self.poll_interval = poll_interval

    async def get(self, key: ResourceKey) -> WatchedRepository | None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(WatchedRepositoryRecord).where(*_key_filter(key))
                )
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise ResourceStoreError(f"Failed to load repo {key}: {e}") from e

        return _to_model(record) if record is not None else None

    async def update_status(
        self, key: ResourceKey, status: RepoStatus
    ) -> WatchedRepository:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    update(WatchedRepositoryRecord)
                    .where(*_key_filter(key))
                    .values(state=status.state, last_synced_at=status.last_synced_at)
                )
                if result.rowcount == 0:
                    raise ResourceNotFoundError(f"Repo {key} not found")
        except SQLAlchemyError as e:
            raise ResourceStoreError(f"Failed to update status of {key}: {e}") from e

        repo = await self.get(key)
        if repo is None:
            raise ResourceNotFoundError(f"Repo {key} not found")
        return repo

    async def list_keys(self) -> list[ResourceKey]:
        generations = await self._generations()
        return sorted(generations)

    async def put(self, key: ResourceKey, spec: RepoSpec) -> WatchedRepository:
        """Create a resource or replace its spec, bumping the generation on change."""
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    select(WatchedRepositoryRecord).where(*_key_filter(key))
                )
                record = result.scalar_one_or_none()
                if record is None:
                    record = WatchedRepositoryRecord(
                        namespace=key.namespace,
                        name=key.name,
                        owner=spec.owner,
                        repo=spec.name,
                        credential_ref=spec.credential_ref,
                        generation=1,
                    )
                    session.add(record)
                elif (record.owner, record.repo, record.credential_ref) != (
                    spec.owner,
                    spec.name,
                    spec.credential_ref,
                ):
                    record.owner = spec.owner
                    record.repo = spec.name
                    record.credential_ref = spec.credential_ref
                    record.generation += 1
                await session.flush()
                repo = _to_model(record)
        except SQLAlchemyError as e:
            raise ResourceStoreError(f"Failed to store repo {key}: {e}") from e

        return repo

    async def delete(self, key: ResourceKey) -> bool:
        """Delete a resource. Returns True if it existed."""
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    delete(WatchedRepositoryRecord).where(*_key_filter(key))
                )
        except SQLAlchemyError as e:
            raise ResourceStoreError(f"Failed to delete repo {key}: {e}") from e
        return result.rowcount > 0

    async def _generations(self) -> dict[ResourceKey, int]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(
                        WatchedRepositoryRecord.namespace,
                        WatchedRepositoryRecord.name,
                        WatchedRepositoryRecord.generation,
                    )
                )
                rows = result.all()
        except SQLAlchemyError as e:
            raise ResourceStoreError(f"Failed to list repos: {e}") from e

        return {
            ResourceKey(namespace=namespace, name=name): generation
            for namespace, name, generation in rows
        }

    async def watch(self) -> AsyncIterator[ResourceKey]:
        known: dict[ResourceKey, int] | None = None
        while True:
            try:
                current = await self._generations()
            except ResourceStoreError as e:
                logger.warning(f"Watch poll failed: {e}")
                await asyncio.sleep(self.poll_interval)
                continue

            # The first successful poll only takes the baseline snapshot
            previous, known = known, current
            if previous is not None:
                changed = {
                    key
                    for key in current.keys() | previous.keys()
                    if current.get(key) != previous.get(key)
                }
                for key in sorted(changed):
                    yield key

            await asyncio.sleep(self.poll_interval)


class SqlSecretStore(SecretStore):
    """Secret store over the ``credential_secrets`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_secret(self, namespace: str, name: str) -> dict[str, bytes] | None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(CredentialSecretRecord.key, CredentialSecretRecord.value)
                    .where(CredentialSecretRecord.namespace == namespace)
                    .where(CredentialSecretRecord.name == name)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            raise ResourceStoreError(
                f"Failed to load secret {namespace}/{name}: {e}"
            ) from e

        if not rows:
            return None
        return {key: bytes(value) for key, value in rows}

    async def put_secret(
        self, namespace: str, name: str, data: dict[str, bytes]
    ) -> None:
        """Replace all keys of a secret."""
        try:
            async with self.session_factory() as session, session.begin():
                await session.execute(
                    delete(CredentialSecretRecord)
                    .where(CredentialSecretRecord.namespace == namespace)
                    .where(CredentialSecretRecord.name == name)
                )
                session.add_all(
                    CredentialSecretRecord(
                        namespace=namespace, name=name, key=key, value=value
                    )
                    for key, value in data.items()
                )
        except SQLAlchemyError as e:
            raise ResourceStoreError(
                f"Failed to store secret {namespace}/{name}: {e}"
            ) from e
