"""Configuration loader: TOML file plus environment overrides."""

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from directus_sync.config.models import SyncConfig
from directus_sync.errors import ConfigError

DEFAULT_CONFIG_FILE = "directus-sync.toml"

# Environment variable (without prefix) -> [instance] key
ENV_OVERRIDES = {
    "DIRECTUS_URL": "url",
    "DIRECTUS_TOKEN": "token",
    "DIRECTUS_EMAIL": "email",
    "DIRECTUS_PASSWORD": "password",
}


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = "",
) -> SyncConfig:
    """Load configuration from a TOML file and the environment.

    Args:
        config_path: Path to the TOML file. When ``None``, uses
            ``directus-sync.toml`` in the working directory if it exists,
            otherwise defaults only.
        env_prefix: Prefix for environment variable lookup
            (``env_prefix="STAGING_"`` reads ``STAGING_DIRECTUS_URL``).

    Returns:
        SyncConfig with environment overrides applied.

    Raises:
        ConfigError: If an explicit config file is missing, or the file
            is not valid TOML or does not match the expected structure.
    """
    data: dict = {}

    if config_path is None:
        default = Path.cwd() / DEFAULT_CONFIG_FILE
        if default.exists():
            config_path = default
    elif not Path(config_path).exists():
        raise ConfigError(f"Config file not found: {config_path}")

    if config_path is not None:
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    instance = dict(data.get("instance", {}))
    for name, key in ENV_OVERRIDES.items():
        value = os.environ.get(f"{env_prefix}{name}")
        if value:
            instance[key] = value
    data["instance"] = instance

    try:
        return SyncConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
