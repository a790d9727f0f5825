"""Collection data dump, validation and dependency-aware restore.

The collection list, identifiers and dependency references are declared by
the caller (or taken from ``DEFAULT_COLLECTIONS``) -- no bespoke class per
collection except where cleanup cannot be declared.

Usage:
    from directus_sync.collections import CollectionDef, DependencyRef
    from directus_sync.collections import RestoreDriver, validate_dump
"""

from directus_sync.collections.driver import DriverState, RestoreDriver, RestoreReport
from directus_sync.collections.models import (
    DEFAULT_COLLECTIONS,
    CollectionDef,
    CollectionSummary,
    DependencyRef,
    RestoreOutcome,
)
from directus_sync.collections.restorer import (
    CollectionRestorer,
    IdRegistry,
    PermissionsRestorer,
    UsersRestorer,
    create_restorer,
)
from directus_sync.collections.store import RecordStore
from directus_sync.collections.validate import validate_dump

__all__ = [
    "DEFAULT_COLLECTIONS",
    "CollectionDef",
    "CollectionSummary",
    "DependencyRef",
    "RestoreOutcome",
    "RecordStore",
    "IdRegistry",
    "CollectionRestorer",
    "UsersRestorer",
    "PermissionsRestorer",
    "create_restorer",
    "RestoreDriver",
    "RestoreReport",
    "DriverState",
    "validate_dump",
]
