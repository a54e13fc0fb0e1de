"""Configuration loading and validation."""

from .models import (
    ApiConfig,
    AppConfig,
    ExportConfig,
    LoggingConfig,
    RepositoryConfig,
)
from .loader import ConfigError, load_app_config, validate_app_config_file

__all__ = [
    # Config models
    "ApiConfig",
    "AppConfig",
    "ExportConfig",
    "LoggingConfig",
    "RepositoryConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "validate_app_config_file",
]
