"""Repository stats exporter worker.

Wires configuration, stores, the metric registry, the reconciler and its
scheduler together, serves the scrape endpoint and runs until signalled.
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import timedelta
from typing import Any

from prometheus_client import CollectorRegistry

from src.config.loader import ConfigurationLoader
from src.config.models import ExporterConfig
from src.database.connection import DatabaseConnectionManager
from src.github.client import GitHubClientConfig
from src.metrics.exporter import start_metrics_server
from src.metrics.publisher import RepoMetricsPublisher
from src.reconciler.controller import RepoReconciler
from src.reconciler.interfaces import ResourceStore, SecretStore
from src.reconciler.models import RepoSpec, ResourceKey
from src.reconciler.scheduler import ReconcileScheduler
from src.stats.fetcher import GitHubClientFactory
from src.store.database import SqlResourceStore, SqlSecretStore
from src.store.memory import InMemoryResourceStore, InMemorySecretStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_client_factory(config: ExporterConfig) -> GitHubClientFactory:
    """Create the GitHub client factory from configuration."""
    github = config.github
    return GitHubClientFactory(
        config=GitHubClientConfig(
            base_url=github.base_url,
            user_agent=github.user_agent,
            per_page=github.page_size,
            max_pages=github.max_pages,
        ),
        anonymous_timeout=github.anonymous_timeout,
        authenticated_timeout=github.authenticated_timeout,
        rate_limit_buffer=github.rate_limit_buffer,
    )


async def seed_stores(
    config: ExporterConfig,
    store: InMemoryResourceStore | SqlResourceStore,
    secrets: InMemorySecretStore | SqlSecretStore,
) -> None:
    """Load repositories and secrets declared in the configuration."""
    for secret_ref, data in config.secrets.items():
        key = ResourceKey.parse(secret_ref)
        encoded = {k: v.encode("utf-8") for k, v in data.items()}
        await secrets.put_secret(key.namespace, key.name, encoded)

    for seed in config.repositories:
        await store.put(
            ResourceKey(namespace=seed.namespace, name=seed.resource_name),
            RepoSpec(
                owner=seed.owner, name=seed.repo, credential_ref=seed.credential_ref
            ),
        )

    if config.repositories:
        logger.info(f"Seeded {len(config.repositories)} watched repositories")


class ExporterWorker:
    """Main worker that owns every long-lived component of the exporter."""

    def __init__(
        self,
        config_path: str | None = None,
        config: ExporterConfig | None = None,
    ):
        """Initialize exporter worker.

        Args:
            config_path: Optional path to configuration file
            config: Already loaded configuration, takes precedence over the path
        """
        self.config_path = config_path
        self.config = config

        self.registry = CollectorRegistry()
        self.database: DatabaseConnectionManager | None = None
        self.store: ResourceStore | None = None
        self.secrets: SecretStore | None = None
        self.publisher: RepoMetricsPublisher | None = None
        self.reconciler: RepoReconciler | None = None
        self.scheduler: ReconcileScheduler | None = None

        self.running = False
        self.shutdown_event = asyncio.Event()

    async def initialize(self) -> None:
        """Initialize worker components."""
        logger.info("Initializing repository stats exporter...")

        if self.config is None:
            self.config = ConfigurationLoader().load(self.config_path)
        config = self.config

        store: InMemoryResourceStore | SqlResourceStore
        secrets: InMemorySecretStore | SqlSecretStore
        if config.database.url:
            self.database = DatabaseConnectionManager(config.database)
            if config.database.create_schema:
                await self.database.create_schema()
            store = SqlResourceStore(
                self.database.session_factory,
                poll_interval=config.reconciler.watch_interval_seconds,
            )
            secrets = SqlSecretStore(self.database.session_factory)
        else:
            store = InMemoryResourceStore()
            secrets = InMemorySecretStore()

        await seed_stores(config, store, secrets)
        self.store = store
        self.secrets = secrets

        self.publisher = RepoMetricsPublisher(
            self.registry, namespace=config.metrics.namespace
        )
        self.reconciler = RepoReconciler(
            store=store,
            secrets=secrets,
            publisher=self.publisher,
            client_factory=build_client_factory(config),
            resync_interval=timedelta(
                seconds=config.reconciler.resync_interval_seconds
            ),
        )
        self.scheduler = ReconcileScheduler(
            self.reconciler,
            store,
            max_concurrent=config.reconciler.max_concurrent,
            backoff_base=config.reconciler.backoff_base_seconds,
            backoff_max=config.reconciler.backoff_max_seconds,
        )

        if config.metrics.enabled:
            start_metrics_server(
                self.registry, host=config.metrics.host, port=config.metrics.port
            )

        logger.info("Repository stats exporter initialized")

    async def run(self) -> None:
        """Run until shutdown is requested."""
        if not self.scheduler:
            raise RuntimeError("Worker not initialized. Call initialize() first.")

        self.running = True
        self._setup_signal_handlers()

        try:
            await self.scheduler.start()
            await self.shutdown_event.wait()
        finally:
            self.running = False
            await self.scheduler.stop()
            logger.info("Repository stats exporter stopped")

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""

        def signal_handler(sig: int, frame: Any) -> None:
            logger.info(f"Received signal {sig}, initiating shutdown...")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def shutdown(self) -> None:
        """Initiate graceful shutdown."""
        logger.info("Shutting down repository stats exporter...")
        self.shutdown_event.set()

    async def cleanup(self) -> None:
        """Clean up resources."""
        if self.database:
            await self.database.close()
        logger.info("Cleanup completed")

    def get_health_status(self) -> dict[str, Any]:
        """Get worker health status."""
        return {
            "healthy": self.running,
            "scheduler": dict(self.scheduler.stats) if self.scheduler else {},
        }


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Repository stats exporter")
    parser.add_argument("--config", help="Configuration file path")
    parser.add_argument("--log-level", help="Log level (overrides configuration)")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point for the exporter worker."""
    args = parse_args(argv)

    try:
        config = ConfigurationLoader().load(args.config)
    except Exception as e:
        logging.basicConfig(format=LOG_FORMAT)
        logger.error(f"Failed to load configuration: {e}")
        return 1

    log_level = args.log_level or config.log_level.value
    logging.basicConfig(level=getattr(logging, log_level.upper()), format=LOG_FORMAT)

    worker = ExporterWorker(config=config)

    try:
        await worker.initialize()
        await worker.run()
    except Exception as e:
        logger.error(f"Worker failed: {e}")
        return 1
    finally:
        await worker.cleanup()

    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
