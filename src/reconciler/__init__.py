"""Reconciliation of watched repositories.

Provides the reconcile controller, the scheduler that drives it, the store
interfaces it consumes and the watched repository data model.
"""

from .controller import DEFAULT_RESYNC_INTERVAL, RepoReconciler
from .exceptions import (
    CredentialResolutionError,
    ReconcileError,
    ResourceNotFoundError,
    ResourceStoreError,
)
from .interfaces import ResourceStore, SecretStore
from .models import (
    SYNCHRONIZED,
    ReconcileResult,
    ReconcileState,
    RepoSpec,
    RepoStatus,
    ResourceKey,
    WatchedRepository,
)
from .scheduler import ReconcileScheduler

__all__ = [
    "DEFAULT_RESYNC_INTERVAL",
    "SYNCHRONIZED",
    "CredentialResolutionError",
    "ReconcileError",
    "ReconcileResult",
    "ReconcileScheduler",
    "ReconcileState",
    "RepoReconciler",
    "RepoSpec",
    "RepoStatus",
    "ResourceKey",
    "ResourceNotFoundError",
    "ResourceStore",
    "ResourceStoreError",
    "SecretStore",
    "WatchedRepository",
]
