"""
Shared fixtures for the repository stats exporter tests.

Provides a fresh metric registry per test, in-memory stores and a
reconciler wired against them with a fixed clock.
"""

from datetime import timedelta

import pytest
from prometheus_client import CollectorRegistry

from src.github.client import GitHubClientConfig
from src.metrics.publisher import RepoMetricsPublisher
from src.reconciler.controller import RepoReconciler
from src.reconciler.models import ResourceKey
from src.stats.fetcher import GitHubClientFactory
from src.store.memory import InMemoryResourceStore, InMemorySecretStore
from tests.fixtures.payloads import SYNC_TIME


@pytest.fixture
def registry() -> CollectorRegistry:
    """
    Isolated Prometheus registry.

    Why: Series registered in one test must not collide with another test
    What: Provides a new CollectorRegistry instance
    How: Constructs the registry directly instead of using the global one
    """
    return CollectorRegistry()


@pytest.fixture
def publisher(registry: CollectorRegistry) -> RepoMetricsPublisher:
    return RepoMetricsPublisher(registry)


@pytest.fixture
def resource_store() -> InMemoryResourceStore:
    return InMemoryResourceStore()


@pytest.fixture
def secret_store() -> InMemorySecretStore:
    return InMemorySecretStore()


@pytest.fixture
def repo_key() -> ResourceKey:
    return ResourceKey(namespace="default", name="widgets")


@pytest.fixture
def client_factory() -> GitHubClientFactory:
    return GitHubClientFactory(config=GitHubClientConfig())


@pytest.fixture
def reconciler(
    resource_store: InMemoryResourceStore,
    secret_store: InMemorySecretStore,
    publisher: RepoMetricsPublisher,
    client_factory: GitHubClientFactory,
) -> RepoReconciler:
    """
    Reconciler wired to in-memory stores.

    Why: Cycles must be observable without a database or a live GitHub API
    What: Provides a RepoReconciler whose clock always returns SYNC_TIME
    How: Injects the shared fixtures and a constant clock
    """
    return RepoReconciler(
        store=resource_store,
        secrets=secret_store,
        publisher=publisher,
        client_factory=client_factory,
        resync_interval=timedelta(minutes=5),
        clock=lambda: SYNC_TIME,
    )
