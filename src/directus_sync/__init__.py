"""directus-sync: schema snapshots and dependency-aware data restore for Directus.

Dumps a Directus instance's schema (collections, fields, relations) and
collection data to disk, plans and applies schema changes through the
instance's own diff/apply endpoints, and restores collection data with a
bounded retry loop that waits for referenced records to exist.

Usage:
    from directus_sync import load_config, create_context
    from directus_sync import RestoreDriver, CollectionDef, DependencyRef
    from directus_sync import SnapshotClient, AsyncDirectusAdapter
"""

__version__ = "0.1.0"

# Remote client
from directus_sync.adapters.base import DirectusClient
from directus_sync.adapters.http import AsyncDirectusAdapter

# Config
from directus_sync.config.loader import load_config
from directus_sync.config.models import SyncConfig

# Collections
from directus_sync.collections.driver import RestoreDriver, RestoreReport
from directus_sync.collections.models import CollectionDef, DependencyRef, RestoreOutcome
from directus_sync.collections.restorer import CollectionRestorer, create_restorer
from directus_sync.collections.store import RecordStore

# Snapshot
from directus_sync.snapshot.client import SnapshotClient
from directus_sync.snapshot.models import Snapshot, SnapshotPlan

# Factory
from directus_sync.factory import AppContext, create_context

# Errors
from directus_sync.errors import (
    ConfigError,
    ConvergenceFailed,
    DirectusSyncError,
    MalformedDumpError,
    RemoteConnectivityError,
    RemoteValidationError,
)

__all__ = [
    # Remote client
    "DirectusClient",
    "AsyncDirectusAdapter",
    # Config
    "load_config",
    "SyncConfig",
    # Collections
    "RestoreDriver",
    "RestoreReport",
    "CollectionDef",
    "DependencyRef",
    "RestoreOutcome",
    "CollectionRestorer",
    "create_restorer",
    "RecordStore",
    # Snapshot
    "SnapshotClient",
    "Snapshot",
    "SnapshotPlan",
    # Factory
    "AppContext",
    "create_context",
    # Errors
    "DirectusSyncError",
    "ConfigError",
    "ConvergenceFailed",
    "MalformedDumpError",
    "RemoteConnectivityError",
    "RemoteValidationError",
]
