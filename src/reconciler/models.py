"""Data models for watched repositories and reconcile cycles."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

SYNCHRONIZED = "Synchronized"
DEFAULT_NAMESPACE = "default"


class ReconcileState(str, Enum):
    """Lifecycle of a watched repository within this process."""

    PENDING = "Pending"
    SYNCHRONIZING = "Synchronizing"
    SYNCHRONIZED = SYNCHRONIZED


@dataclass(frozen=True, order=True)
class ResourceKey:
    """Store key of a watched repository."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "ResourceKey":
        """Parse ``namespace/name``; a bare name uses the default namespace."""
        namespace, sep, name = value.partition("/")
        if not sep:
            namespace, name = DEFAULT_NAMESPACE, value
        if not namespace or not name:
            raise ValueError(f"Invalid resource key: {value!r}")
        return cls(namespace=namespace, name=name)


@dataclass(frozen=True)
class RepoSpec:
    """Desired state: which GitHub repository to watch and how to authenticate."""

    owner: str
    name: str
    credential_ref: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class RepoStatus:
    """Observed state written after each successful cycle."""

    state: str | None = None
    last_synced_at: datetime | None = None


@dataclass(frozen=True)
class WatchedRepository:
    """A "watch this repository" resource.

    ``generation`` is bumped by the store whenever the spec changes and is
    left alone by status updates.
    """

    key: ResourceKey
    spec: RepoSpec
    status: RepoStatus = field(default_factory=RepoStatus)
    generation: int = 1


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconcile cycle, consumed by the scheduler.

    ``next_run_after`` is the regular resync delay; on failure the scheduler
    may run the key sooner according to its backoff policy. ``requeue`` is
    False when the resource no longer exists.
    """

    success: bool
    next_run_after: timedelta | None = None
    requeue: bool = True
    error: BaseException | None = None
