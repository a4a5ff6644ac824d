"""SQLAlchemy models backing the database stores."""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Integer,
    LargeBinary,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class WatchedRepositoryRecord(Base):
    """Row of a watched repository resource."""

    __tablename__ = "watched_repositories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Resource key
    namespace: Mapped[str] = mapped_column(String(253), nullable=False)
    name: Mapped[str] = mapped_column(String(253), nullable=False)

    # Spec
    owner: Mapped[str] = mapped_column(String(200), nullable=False)
    repo: Mapped[str] = mapped_column(String(200), nullable=False)
    credential_ref: Mapped[str | None] = mapped_column(String(253), nullable=True)
    generation: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Status
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("namespace", "name", name="uq_watched_repository_key"),
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<WatchedRepositoryRecord({self.namespace}/{self.name}, "
            f"repo={self.owner}/{self.repo}, generation={self.generation})>"
        )


class CredentialSecretRecord(Base):
    """One key of a credential secret."""

    __tablename__ = "credential_secrets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    namespace: Mapped[str] = mapped_column(String(253), nullable=False)
    name: Mapped[str] = mapped_column(String(253), nullable=False)
    key: Mapped[str] = mapped_column(String(253), nullable=False)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    __table_args__ = (
        UniqueConstraint("namespace", "name", "key", name="uq_credential_secret_key"),
    )

    def __repr__(self) -> str:
        """Return string representation without the secret value."""
        return f"<CredentialSecretRecord({self.namespace}/{self.name}, key={self.key})>"
