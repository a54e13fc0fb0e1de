"""
YAML configuration loading.

`load_app_config` reads app.yaml, expands `${VAR}` / `${VAR:-default}`
references, applies environment overrides and validates the result into an
AppConfig.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig

CONFIG_PATH_ENV = "NEXORA_CONFIG"
DEFAULT_CONFIG_PATH = Path("configs/app.yaml")

# Environment variables overriding single settings: (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "NEXORA_API_URL": ("api", "base_url"),
    "NEXORA_LOG_LEVEL": ("logging", "level"),
}

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


class ConfigError(Exception):
    """app.yaml could not be read or does not describe a valid configuration."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Explicit path, else $NEXORA_CONFIG, else configs/app.yaml."""
    if path is not None:
        return Path(path)
    return Path(os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)


def read_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML mapping; an empty file reads as {}.

    Raises:
        ConfigError: Missing or unreadable file, bad YAML, or a non-mapping top level
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}", path=path) from None
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping", path=path)
    return data


def expand_env(value: Any) -> Any:
    """Substitute environment references in every string of a YAML tree."""
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group("name"), m.group("default") or ""),
            value,
        )
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of `data` with ENV_OVERRIDES applied (non-empty values only)."""
    result = dict(data)
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            result[section] = {**(result.get(section) or {}), key: value}
    return result


def _format_errors(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    ]


def load_app_config(
    path: Path | str | None = None,
    expand_env_vars: bool = True,
) -> AppConfig:
    """Load the application configuration.

    A missing file is not an error: defaults apply, still subject to
    environment overrides.

    Args:
        path: app.yaml location (see resolve_config_path)
        expand_env_vars: Substitute ${VAR} references

    Raises:
        ConfigError: If the file is unreadable or the configuration invalid
    """
    path = resolve_config_path(path)
    data = read_yaml(path) if path.exists() else {}
    if expand_env_vars:
        data = expand_env(data)
    data = apply_env_overrides(data)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid app configuration in {path}",
            path=path,
            details="\n".join(_format_errors(e)),
        ) from e


def validate_app_config_file(path: Path | str) -> list[str]:
    """Problems found in a configuration file, as `location: message` lines.

    Environment references are expanded first. An empty list means valid.
    """
    try:
        data = expand_env(read_yaml(Path(path)))
    except ConfigError as e:
        return [str(e)]

    try:
        AppConfig.model_validate(data)
    except ValidationError as e:
        return _format_errors(e)
    return []
