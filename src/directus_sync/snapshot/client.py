"""Schema snapshot dump, plan and restore.

The snapshot is written either as one ``snapshot.json`` document or, with
``split_files``, decomposed into one file per collection, field and
relation::

    info.json
    collections/<collection>.json
    fields/<collection>/<field>.json
    relations/<collection>/<field>.json

Diffing and applying are delegated to the instance; this module only moves
snapshots and diffs between disk and the remote client.

Usage:
    from directus_sync.snapshot.client import SnapshotClient

    snapshots = SnapshotClient(client, dump_path="./dump/snapshot",
                               split_files=True)
    await snapshots.dump()
    plan = await snapshots.plan()
    if plan.has_changes:
        await snapshots.restore()
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Any

from directus_sync.adapters.base import DirectusClient
from directus_sync.errors import MalformedDumpError
from directus_sync.snapshot.models import Snapshot, SnapshotPlan

logger = logging.getLogger(__name__)

SNAPSHOT_JSON = "snapshot.json"
INFO_JSON = "info.json"
COLLECTIONS_DIR = "collections"
FIELDS_DIR = "fields"
RELATIONS_DIR = "relations"


class SnapshotClient:
    """Moves schema snapshots between the instance and the dump directory.

    Args:
        client: Remote client.
        dump_path: Directory holding the snapshot dump.
        split_files: Use the decomposed layout instead of ``snapshot.json``.
    """

    def __init__(
        self,
        client: DirectusClient,
        dump_path: str | Path,
        split_files: bool = True,
    ) -> None:
        self.client = client
        self.dump_path = Path(dump_path)
        self.split_files = split_files

    async def dump(self) -> int:
        """Fetch the snapshot from the instance and save it.

        Returns:
            Number of files written.
        """
        snapshot = Snapshot(**await self.client.fetch_schema_snapshot())
        count = self.save_data(snapshot)
        logger.info(
            "Saved %d file%s to %s", count, "s" if count != 1 else "", self.dump_path
        )
        return count

    def save_data(self, snapshot: Snapshot) -> int:
        """Replace the dump directory with ``snapshot``; return files written."""
        if self.dump_path.exists():
            shutil.rmtree(self.dump_path)
        self.dump_path.mkdir(parents=True)

        if not self.split_files:
            _write_json(self.dump_path / SNAPSHOT_JSON, snapshot.to_dict())
            return 1

        files = self.decompose_data(snapshot)
        for relative, content in files:
            _write_json(self.dump_path / relative, content)
        return len(files)

    def decompose_data(self, snapshot: Snapshot) -> list[tuple[str, Any]]:
        """Split a snapshot into ``(relative path, content)`` pairs."""
        files: list[tuple[str, Any]] = [(INFO_JSON, snapshot.info)]
        for collection in snapshot.collections:
            files.append((f"{COLLECTIONS_DIR}/{collection['collection']}.json", collection))
        for field in snapshot.fields:
            files.append(
                (f"{FIELDS_DIR}/{field['collection']}/{field['field']}.json", field)
            )
        for relation in snapshot.relations:
            files.append(
                (f"{RELATIONS_DIR}/{relation['collection']}/{relation['field']}.json", relation)
            )
        return files

    def load_data(self) -> Snapshot:
        """Load the snapshot from disk, reassembling the split layout if used.

        Raises:
            MalformedDumpError: If a file is missing or not valid JSON.
        """
        if self.split_files:
            info = _read_json(self.dump_path / INFO_JSON)
            if not isinstance(info, dict):
                raise MalformedDumpError(self.dump_path / INFO_JSON, "expected a JSON object")
            snapshot = Snapshot(
                **info,
                collections=_load_json_files_recursively(self.dump_path / COLLECTIONS_DIR),
                fields=_load_json_files_recursively(self.dump_path / FIELDS_DIR),
                relations=_load_json_files_recursively(self.dump_path / RELATIONS_DIR),
            )
        else:
            path = self.dump_path / SNAPSHOT_JSON
            data = _read_json(path)
            if not isinstance(data, dict):
                raise MalformedDumpError(path, "expected a JSON object")
            snapshot = Snapshot(**data)
        return snapshot.normalized()

    async def diff_snapshot(self) -> dict[str, Any] | None:
        """Diff the saved snapshot against the instance; ``None`` if identical."""
        snapshot = self.load_data()
        return await self.client.compute_schema_diff(snapshot.to_dict())

    async def plan(self) -> SnapshotPlan:
        """Report the changes the saved snapshot would apply, without applying."""
        diff = await self.diff_snapshot()
        plan = SnapshotPlan.from_diff(diff)
        if diff is None:
            logger.info("No changes to apply")
        else:
            for label, count in (
                ("collections", plan.collections),
                ("fields", plan.fields),
                ("relations", plan.relations),
            ):
                logger.info(
                    "Found %d change%s in %s", count, "s" if count != 1 else "", label
                )
            logger.debug("Diff: %s", diff)
        return plan

    async def restore(self) -> bool:
        """Apply the saved snapshot to the instance.

        Returns:
            ``True`` if a diff was applied, ``False`` if nothing changed.
        """
        diff = await self.diff_snapshot()
        if diff is None:
            logger.info("No changes to apply")
            return False
        await self.client.apply_schema_diff(diff)
        logger.info("Changes applied")
        return True


def _write_json(path: Path, content: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content, indent=2, default=str), encoding="utf-8")


def _read_json(path: Path) -> Any:
    if not path.is_file():
        raise MalformedDumpError(path, "file not found")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except UnicodeDecodeError as e:
        raise MalformedDumpError(path, f"not valid UTF-8 ({e.reason})") from e
    except json.JSONDecodeError as e:
        raise MalformedDumpError(path, f"invalid JSON ({e})") from e


def _load_json_files_recursively(directory: Path) -> list[Any]:
    """Load every ``*.json`` under ``directory``, sorted by path."""
    if not directory.is_dir():
        return []
    return [_read_json(path) for path in sorted(directory.rglob("*.json"))]
