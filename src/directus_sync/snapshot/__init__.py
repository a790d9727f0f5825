"""Schema snapshot dump / plan / restore against a live instance.

Usage:
    from directus_sync.snapshot import SnapshotClient, Snapshot, SnapshotPlan
"""

from directus_sync.snapshot.client import SnapshotClient
from directus_sync.snapshot.models import Snapshot, SnapshotPlan

__all__ = ["SnapshotClient", "Snapshot", "SnapshotPlan"]
