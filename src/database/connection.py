"""Database connection management.

Provides the async SQLAlchemy engine and session factory used by the
database-backed resource and secret stores.
"""

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config.models import DatabaseSettings
from ..store.models import Base

logger = logging.getLogger(__name__)


class DatabaseConnectionManager:
    """Manages the database engine and session factory."""

    def __init__(self, settings: DatabaseSettings):
        if not settings.url:
            raise ValueError("Database URL is not configured")
        self.settings = settings
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create async database engine."""
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get or create async session factory."""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,  # Keep objects usable after commit
            )
        return self._session_factory

    def _create_engine(self) -> AsyncEngine:
        """Create async SQLAlchemy engine."""
        url = self.settings.url or ""
        engine = create_async_engine(
            url, echo=self.settings.echo, pool_pre_ping=True
        )

        @event.listens_for(engine.sync_engine, "connect")
        def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
            logger.debug("New database connection established")

        logger.info(f"Created database engine for {engine.url.render_as_string()}")
        return engine

    async def create_schema(self) -> None:
        """Create the store tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready")

    async def close(self) -> None:
        """Close database engine and clean up connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database engine disposed")
