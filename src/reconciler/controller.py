"""Reconciliation of watched repositories into Prometheus metrics.

One call to ``RepoReconciler.reconcile`` is one cycle for one resource:

1. load the resource (a missing resource ends the cycle quietly),
2. resolve its credential,
3. fetch repository data from GitHub and aggregate it into a snapshot,
4. publish the snapshot,
5. record ``Synchronized`` and the sync time in the resource status.

Any failure in steps 1-3 ends the cycle before anything is published or
written, so a failed cycle leaves metrics and status exactly as they were.
Steps 4 and 5 run as one tail that is shielded from cancellation.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from ..github.auth import AnonymousCredential, Credential, TokenCredential
from ..metrics.publisher import RepoMetricsPublisher
from ..stats.aggregator import aggregate_repo_data
from ..stats.fetcher import GitHubClientFactory, RepoStatsFetcher
from ..stats.models import RepoMetricsSnapshot
from .exceptions import CredentialResolutionError, ResourceNotFoundError
from .interfaces import ResourceStore, SecretStore
from .models import (
    SYNCHRONIZED,
    ReconcileResult,
    ReconcileState,
    RepoStatus,
    ResourceKey,
    WatchedRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_RESYNC_INTERVAL = timedelta(minutes=5)
TOKEN_KEY = "token"  # nosec B105


def utc_now() -> datetime:
    return datetime.now(UTC)


class RepoReconciler:
    """Runs reconcile cycles for watched repositories.

    The reconciler keeps no per-resource locks: the scheduler guarantees that
    a key never has two cycles in flight.
    """

    def __init__(
        self,
        store: ResourceStore,
        secrets: SecretStore,
        publisher: RepoMetricsPublisher,
        client_factory: GitHubClientFactory,
        resync_interval: timedelta = DEFAULT_RESYNC_INTERVAL,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the reconciler.

        Args:
            store: Store holding the watched repositories
            secrets: Store holding credential secrets
            publisher: Publisher owning the metric series
            client_factory: Builds a GitHub client per resolved credential
            resync_interval: Delay before a resource is reconciled again
            clock: Source of the sync timestamps written to status
        """
        self.store = store
        self.secrets = secrets
        self.publisher = publisher
        self.client_factory = client_factory
        self.resync_interval = resync_interval
        self.clock = clock

        self._states: dict[ResourceKey, ReconcileState] = {}

    def get_state(self, key: ResourceKey) -> ReconcileState | None:
        """In-process lifecycle state of a resource, None if never seen."""
        return self._states.get(key)

    async def reconcile(self, key: ResourceKey) -> ReconcileResult:
        """Run one cycle for ``key``.

        Failures are logged and returned in the result rather than raised;
        cancellation propagates.
        """
        try:
            return await self._reconcile(key)
        except asyncio.CancelledError:
            self._states[key] = ReconcileState.PENDING
            raise
        except Exception as e:
            self._states[key] = ReconcileState.PENDING
            logger.error(f"Failed to reconcile {key}: {e}")
            return ReconcileResult(
                success=False, next_run_after=self.resync_interval, error=e
            )

    async def _reconcile(self, key: ResourceKey) -> ReconcileResult:
        repo = await self.store.get(key)
        if repo is None:
            # Deleted resources come back through a watch notification
            logger.debug(f"Repo {key} not found, skipping")
            self._states.pop(key, None)
            return ReconcileResult(success=True, requeue=False)

        self._states[key] = ReconcileState.SYNCHRONIZING

        credential = await self.resolve_credential(repo)
        snapshot = await self.collect_snapshot(repo, credential)

        return await asyncio.shield(self._commit(repo, snapshot))

    async def resolve_credential(self, repo: WatchedRepository) -> Credential:
        """Resolve the credential referenced by a resource.

        Raises:
            CredentialResolutionError: If the secret or its token key is missing,
                or the token is not valid UTF-8
        """
        ref = repo.spec.credential_ref
        if not ref:
            return AnonymousCredential()

        secret = await self.secrets.get_secret(repo.key.namespace, ref)
        if secret is None:
            raise CredentialResolutionError(
                f"Secret {repo.key.namespace}/{ref} referenced by {repo.key} "
                f"not found",
                details={"secret": ref},
            )

        token = secret.get(TOKEN_KEY)
        if not token:
            raise CredentialResolutionError(
                f"Secret {repo.key.namespace}/{ref} has no '{TOKEN_KEY}' key",
                details={"secret": ref},
            )

        try:
            token.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CredentialResolutionError(
                f"Token in secret {repo.key.namespace}/{ref} is not valid UTF-8",
                details={"secret": ref},
            ) from e

        return TokenCredential(token=token)

    async def collect_snapshot(
        self, repo: WatchedRepository, credential: Credential
    ) -> RepoMetricsSnapshot:
        """Fetch and aggregate the metrics of a repository."""
        async with self.client_factory.create(credential) as client:
            data = await RepoStatsFetcher(client).fetch(
                repo.spec.owner, repo.spec.name
            )
        return aggregate_repo_data(data, repo.status.last_synced_at)

    async def _commit(
        self, repo: WatchedRepository, snapshot: RepoMetricsSnapshot
    ) -> ReconcileResult:
        self.publisher.publish(repo.spec.owner, repo.spec.name, snapshot)

        status = RepoStatus(state=SYNCHRONIZED, last_synced_at=self.clock())
        try:
            await self.store.update_status(repo.key, status)
        except ResourceNotFoundError:
            logger.info(f"Repo {repo.key} was deleted during reconcile")
            self._states.pop(repo.key, None)
            return ReconcileResult(success=True, requeue=False)

        self._states[repo.key] = ReconcileState.SYNCHRONIZED
        logger.info(f'Reconciled "{repo.spec.full_name}"')
        return ReconcileResult(success=True, next_run_after=self.resync_interval)
