"""Configuration Loader - resolve the active runtime configuration.

The active configuration is `.alexa-velux/config.json` in the working
directory (or the defaults when that file is absent) with any
``ALEXA_VELUX_*`` environment variables applied on top. The result is cached
per config file path; call ``reset_config()`` after changing the file or the
environment.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError

from alexa_velux.core.config import AlexaVeluxConfig
from alexa_velux.core.exceptions import VeluxError

CONFIG_DIR_NAME = ".alexa-velux"
CONFIG_FILE_NAME = "config.json"


class ConfigError(VeluxError):
    """Raised when the configuration file or overrides are invalid."""


@dataclass(frozen=True)
class EnvOverride:
    """An environment variable that replaces one config field."""

    env_var: str
    section: str
    field: str
    description: str

    @property
    def config_path(self) -> str:
        return f"{self.section}.{self.field}"


ENV_OVERRIDES: tuple[EnvOverride, ...] = (
    EnvOverride("ALEXA_VELUX_STORE_BACKEND", "store", "backend", "json or memory"),
    EnvOverride("ALEXA_VELUX_STORE_PATH", "store", "path", "JSON store file"),
    EnvOverride("ALEXA_VELUX_SKILL_TYPE", "skill", "type", "custom or smart_home"),
    EnvOverride("ALEXA_VELUX_HTTP_TIMEOUT", "http", "timeout", "Request timeout (seconds)"),
    EnvOverride("ALEXA_VELUX_VERIFY_SSL", "http", "verify_ssl", "Verify backend certificates"),
    EnvOverride("ALEXA_VELUX_LOG_LEVEL", "logging", "level", "debug, info, warning, error"),
)


def get_config_file_path(working_dir: Path | None = None) -> Path:
    return (working_dir or Path.cwd()) / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def get_env_overrides() -> dict[str, str]:
    """Return the override variables that are set to a non-empty value."""
    return {o.env_var: os.environ[o.env_var] for o in ENV_OVERRIDES if os.environ.get(o.env_var)}


def load_config_from_file(config_path: Path) -> AlexaVeluxConfig:
    """Parse a config file.

    Raises:
        ConfigError: If the file is not valid JSON or doesn't match the schema.
    """
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(
            f"Config file at {config_path} contains invalid JSON",
            f"JSON parse error at line {e.lineno}, column {e.colno}: {e.msg}",
        ) from e
    except OSError as e:
        raise ConfigError(f"Could not read config file at {config_path}", str(e)) from e

    try:
        return AlexaVeluxConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Config file at {config_path} has invalid structure", str(e)) from e


def with_env_overrides(config: AlexaVeluxConfig) -> AlexaVeluxConfig:
    """Return ``config`` with every set override variable applied.

    Raises:
        ConfigError: If an override value is invalid for its field.
    """
    overrides = get_env_overrides()
    if not overrides:
        return config

    data = config.model_dump()
    for override in ENV_OVERRIDES:
        if override.env_var in overrides:
            data[override.section][override.field] = overrides[override.env_var]

    try:
        return AlexaVeluxConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError("Invalid environment variable override", str(e)) from e


def write_default_config(config_path: Path, overwrite: bool = False) -> Path:
    """Write the default configuration to ``config_path``.

    Raises:
        FileExistsError: If the file exists and overwrite is False.
    """
    if config_path.exists() and not overwrite:
        raise FileExistsError(f"Config file already exists: {config_path}")

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(AlexaVeluxConfig().model_dump_json(indent=2) + "\n", encoding="utf-8")
    return config_path


@lru_cache(maxsize=8)
def _load(config_path: Path) -> AlexaVeluxConfig:
    config = load_config_from_file(config_path) if config_path.exists() else AlexaVeluxConfig()
    return with_env_overrides(config)


def get_config(working_dir: Path | None = None) -> AlexaVeluxConfig:
    """Return the active configuration for ``working_dir`` (default: cwd)."""
    return _load(get_config_file_path(working_dir))


def reset_config() -> None:
    """Forget cached configurations so the next access reloads them."""
    _load.cache_clear()
