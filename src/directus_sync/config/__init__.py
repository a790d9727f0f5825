"""Configuration management: TOML loading, env overrides and config models.

Usage:
    >>> from directus_sync.config import load_config, SyncConfig
"""

from directus_sync.config.loader import load_config
from directus_sync.config.models import (
    CollectionsConfig,
    InstanceConfig,
    SnapshotConfig,
    SyncConfig,
)

__all__ = [
    "load_config",
    "SyncConfig",
    "InstanceConfig",
    "SnapshotConfig",
    "CollectionsConfig",
]
