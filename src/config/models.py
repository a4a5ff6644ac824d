"""Pydantic configuration models for the repository stats exporter.

The configuration hierarchy follows this structure:
- ExporterConfig: Root configuration
- GitHubSettings: API endpoint, pagination and timeouts
- ReconcilerSettings: Resync interval, worker pool and retry backoff
- MetricsSettings: Scrape endpoint and series namespace
- DatabaseSettings: Optional database for the resource and secret stores
- repositories / secrets: Seed data for the in-memory stores

Environment variables are substituted using the format ${VAR_NAME} with
optional defaults: ${VAR_NAME:default_value}
"""

import os
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..reconciler.models import DEFAULT_NAMESPACE

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} and ${VAR:default} in strings.

    Raises:
        ValueError: If a required environment variable is missing
    """
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(
                    f"Required environment variable '{var_name}' not found"
                )

        return _ENV_PATTERN.sub(replacer, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    else:
        return value


class BaseConfigModel(BaseModel):
    """Base configuration model with environment variable substitution."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def substitute_env(cls, values: Any) -> Any:
        """Substitute environment variables in raw string values."""
        if isinstance(values, dict):
            return substitute_env_vars(values)
        return values


class GitHubSettings(BaseConfigModel):
    """GitHub API access settings."""

    base_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    user_agent: str = Field(
        default="repo-stats-exporter/1.0", description="User-Agent request header"
    )
    page_size: int = Field(default=30, ge=1, le=100, description="Items per page")
    max_pages: int = Field(
        default=1000,
        ge=1,
        description="Pages fetched per listing before it is treated as stalled",
    )
    anonymous_timeout: float = Field(
        default=15.0, gt=0, description="Request timeout without a token (seconds)"
    )
    authenticated_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Request timeout with a token (seconds), unset for none",
    )
    rate_limit_buffer: int = Field(
        default=0,
        ge=0,
        description="Remaining quota at which requests stop until the reset",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("GitHub base_url must be an http(s) URL")
        return v


class ReconcilerSettings(BaseConfigModel):
    """Reconcile loop settings."""

    resync_interval_seconds: float = Field(
        default=300.0, gt=0, description="Delay between successful cycles"
    )
    max_concurrent: int = Field(
        default=4, ge=1, description="Resources reconciled concurrently"
    )
    backoff_base_seconds: float = Field(
        default=1.0, gt=0, description="First retry delay after a failed cycle"
    )
    backoff_max_seconds: float = Field(
        default=300.0, gt=0, description="Upper bound for the retry delay"
    )
    watch_interval_seconds: float = Field(
        default=10.0, gt=0, description="Poll interval for database change detection"
    )

    @model_validator(mode="after")
    def validate_backoff(self) -> "ReconcilerSettings":
        """Ensure the backoff bounds are ordered."""
        if self.backoff_base_seconds > self.backoff_max_seconds:
            raise ValueError("backoff_base_seconds cannot exceed backoff_max_seconds")
        return self


class MetricsSettings(BaseConfigModel):
    """Scrape endpoint settings."""

    enabled: bool = Field(default=True, description="Start the HTTP endpoint")
    host: str = Field(default="0.0.0.0", description="Bind address")  # nosec B104
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")
    namespace: str = Field(default="", description="Prefix for all series names")


class DatabaseSettings(BaseConfigModel):
    """Database backing the resource and secret stores."""

    url: str | None = Field(
        default=None, description="SQLAlchemy async URL; unset uses in-memory stores"
    )
    echo: bool = Field(default=False, description="Log SQL statements")
    create_schema: bool = Field(
        default=True, description="Create missing tables at startup"
    )


class RepositorySeed(BaseConfigModel):
    """A watched repository declared in the configuration file."""

    namespace: str = Field(default=DEFAULT_NAMESPACE, min_length=1)
    name: str | None = Field(
        default=None, description="Resource name, defaults to owner-repo"
    )
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    credential_ref: str | None = None

    @property
    def resource_name(self) -> str:
        return self.name or f"{self.owner}-{self.repo}".lower()


class ExporterConfig(BaseConfigModel):
    """Root configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    reconciler: ReconcilerSettings = Field(default_factory=ReconcilerSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    repositories: list[RepositorySeed] = Field(default_factory=list)
    secrets: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Secret name (namespace/name or name) to key/value data",
    )

    @model_validator(mode="after")
    def validate_unique_repositories(self) -> "ExporterConfig":
        """Reject two seeds with the same resource key."""
        seen: set[tuple[str, str]] = set()
        for seed in self.repositories:
            key = (seed.namespace, seed.resource_name)
            if key in seen:
                raise ValueError(f"Duplicate repository {key[0]}/{key[1]}")
            seen.add(key)
        return self
