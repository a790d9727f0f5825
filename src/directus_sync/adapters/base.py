"""Directus client protocol definition.

Defines the ``DirectusClient`` Protocol that remote clients must implement.
All methods are ``async def`` -- the library is async-first.

Schema diffing and applying are opaque remote operations: the client only
ships snapshots and diffs back and forth, it never computes them.

Usage:
    from directus_sync.adapters.base import DirectusClient

    async def do_work(client: DirectusClient) -> None:
        snapshot = await client.fetch_schema_snapshot()
        ids = await client.list_ids("roles", pk="id")
        await client.create_item("roles", {"id": "r1", "name": "Editor"})
        await client.close()
"""

from typing import Any, Protocol


class DirectusClient(Protocol):
    """Remote instance interface used by the snapshot client and restorers.

    All methods are async -- callers must ``await`` every operation.
    """

    async def fetch_schema_snapshot(self) -> dict[str, Any]:
        """Fetch the full schema snapshot of the instance.

        Returns:
            Snapshot dict with ``collections``, ``fields``, ``relations``
            and the info keys (``version``, ``directus``, ``vendor``).
        """
        ...

    async def compute_schema_diff(self, snapshot: dict[str, Any]) -> dict[str, Any] | None:
        """Ask the instance to diff ``snapshot`` against its current schema.

        Args:
            snapshot: Local snapshot dict.

        Returns:
            Diff dict (``{"hash": ..., "diff": {...}}``), or ``None`` when the
            schemas are identical.
        """
        ...

    async def apply_schema_diff(self, diff: dict[str, Any]) -> None:
        """Apply a diff previously returned by ``compute_schema_diff``."""
        ...

    async def list_items(self, collection: str) -> list[dict]:
        """Return every record of a collection.

        Example:
            roles = await client.list_items("roles")
        """
        ...

    async def list_ids(self, collection: str, pk: str = "id") -> set:
        """Return the identifiers of every record of a collection."""
        ...

    async def create_item(self, collection: str, data: dict) -> dict:
        """Create a record and return it.

        Raises:
            RemoteValidationError: If the instance rejects the record.
        """
        ...

    async def update_item(self, collection: str, item_id: Any, data: dict) -> dict:
        """Update the record identified by ``item_id`` and return it.

        Raises:
            RemoteValidationError: If the instance rejects the record.
        """
        ...

    async def close(self) -> None:
        """Release the underlying connection pool."""
        ...
