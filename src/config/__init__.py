"""Configuration management for the repository stats exporter.

Example usage:
    from src.config import ConfigurationLoader

    config = ConfigurationLoader().load("config.yaml")
    interval = config.reconciler.resync_interval_seconds
"""

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationValidationError,
)
from .loader import ConfigurationLoader
from .models import (
    DatabaseSettings,
    ExporterConfig,
    GitHubSettings,
    LogLevel,
    MetricsSettings,
    ReconcilerSettings,
    RepositorySeed,
)

__all__ = [
    "ConfigurationError",
    "ConfigurationFileError",
    "ConfigurationLoader",
    "ConfigurationValidationError",
    "DatabaseSettings",
    "ExporterConfig",
    "GitHubSettings",
    "LogLevel",
    "MetricsSettings",
    "ReconcilerSettings",
    "RepositorySeed",
]
