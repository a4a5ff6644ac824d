"""Resource and secret store implementations."""

from .database import SqlResourceStore, SqlSecretStore
from .memory import InMemoryResourceStore, InMemorySecretStore
from .models import Base, CredentialSecretRecord, WatchedRepositoryRecord

__all__ = [
    "Base",
    "CredentialSecretRecord",
    "InMemoryResourceStore",
    "InMemorySecretStore",
    "SqlResourceStore",
    "SqlSecretStore",
    "WatchedRepositoryRecord",
]
