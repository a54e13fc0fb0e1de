"""
Pydantic configuration models for Nexora Client.

These models provide type-safe configuration with validation for:
- API origin and transport settings
- Per-entity repository settings (cache, retry)
- Export polling and watchdog settings
- Logging
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# API Configuration
# =============================================================================


class ApiConfig(BaseModel):
    """Backend API origin and transport settings."""

    base_url: str = Field(
        default="http://localhost:8080/api/v1",
        description="Base API origin all resource paths are joined to",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra headers sent with every request (e.g. Authorization)",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the origin so paths can be joined with a single slash."""
        v = v.strip()
        if not v:
            raise ValueError("base_url must not be empty")
        return v.rstrip("/")


# =============================================================================
# Repository Configuration
# =============================================================================


class RepositoryConfig(BaseModel):
    """Settings for one entity repository.

    Immutable once a repository is constructed with it.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(
        ...,
        min_length=1,
        description="Resource path relative to the API origin (e.g. inventory/warehouses)",
    )
    entity_name: str = Field(
        ...,
        min_length=1,
        description="Human-readable entity name used in error messages",
    )
    cache_timeout_ms: int = Field(
        default=300_000,
        ge=0,
        description="How long a successful read is served from cache",
    )
    retry_attempts: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Additional attempts after the first failed call",
    )
    cache_enabled: bool = Field(
        default=True,
        description="Serve repeated reads from the in-memory cache",
    )

    @field_validator("base_url")
    @classmethod
    def strip_slashes(cls, v: str) -> str:
        return v.strip().strip("/")


# =============================================================================
# Export Configuration
# =============================================================================


class ExportConfig(BaseModel):
    """Export job polling settings."""

    base_path: str = Field(
        default="inventory/export",
        description="Export endpoints path relative to the API origin",
    )
    poll_interval_ms: int = Field(
        default=2000,
        gt=0,
        description="Delay between job status requests",
    )
    watchdog_timeout_ms: int = Field(
        default=300_000,
        gt=0,
        description="Maximum wait for a terminal status before TIMEOUT",
    )
    status_retry_attempts: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Retries for a failed status request before the job is marked FAILED",
    )

    @field_validator("base_path")
    @classmethod
    def strip_slashes(cls, v: str) -> str:
        return v.strip().strip("/")

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def watchdog_timeout_seconds(self) -> float:
        return self.watchdog_timeout_ms / 1000.0


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def valid_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v


# =============================================================================
# Application Configuration
# =============================================================================


def default_repository_configs() -> dict[str, RepositoryConfig]:
    return {
        "warehouses": RepositoryConfig(base_url="inventory/warehouses", entity_name="Warehouse"),
        "products": RepositoryConfig(base_url="inventory/products", entity_name="Product"),
        "stocks": RepositoryConfig(base_url="inventory/stocks", entity_name="Stock"),
    }


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    repositories: dict[str, RepositoryConfig] = Field(
        default_factory=default_repository_configs,
        description="Repository settings keyed by entity collection name",
    )

    def repository(self, name: str) -> RepositoryConfig:
        """Get repository settings by collection name.

        Raises:
            KeyError: If no repository is configured under that name
        """
        try:
            return self.repositories[name]
        except KeyError:
            known = ", ".join(sorted(self.repositories)) or "none"
            raise KeyError(f"Unknown repository '{name}' (configured: {known})") from None
