"""Prometheus scrape endpoint."""

import logging

from prometheus_client import CollectorRegistry, start_http_server

logger = logging.getLogger(__name__)


def start_metrics_server(
    registry: CollectorRegistry, host: str = "0.0.0.0", port: int = 8080  # nosec B104
) -> None:
    """Serve ``registry`` over HTTP on a background thread."""
    start_http_server(port, addr=host, registry=registry)
    logger.info(f"Metrics server listening on {host}:{port}")
