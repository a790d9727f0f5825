"""Shared fixtures: an in-memory Directus instance and dump helpers."""

import copy
import json
from pathlib import Path

import pytest

from directus_sync.collections.models import CollectionDef
from directus_sync.collections.restorer import IdRegistry, create_restorer
from directus_sync.collections.store import RecordStore
from directus_sync.errors import RemoteValidationError


class FakeDirectusClient:
    """In-memory ``DirectusClient`` keyed by collection and ``id``."""

    def __init__(self) -> None:
        self.items: dict[str, dict] = {}
        self.snapshot: dict = {"version": 1, "directus": "10.10.0",
                               "collections": [], "fields": [], "relations": []}
        self.diff: dict | None = None
        self.diff_requests: list[dict] = []
        self.applied_diffs: list[dict] = []
        self.created: list[tuple[str, object]] = []
        self.updated: list[tuple[str, object]] = []
        self.list_calls: list[str] = []
        self.reject: set[tuple[str, object]] = set()
        self.closed = False

    def seed(self, collection: str, records: list[dict]) -> None:
        bucket = self.items.setdefault(collection, {})
        for record in records:
            bucket[record["id"]] = dict(record)

    async def fetch_schema_snapshot(self) -> dict:
        return copy.deepcopy(self.snapshot)

    async def compute_schema_diff(self, snapshot: dict) -> dict | None:
        self.diff_requests.append(snapshot)
        return copy.deepcopy(self.diff)

    async def apply_schema_diff(self, diff: dict) -> None:
        self.applied_diffs.append(diff)

    async def list_items(self, collection: str) -> list[dict]:
        return [dict(r) for r in self.items.get(collection, {}).values()]

    async def list_ids(self, collection: str, pk: str = "id") -> set:
        self.list_calls.append(collection)
        return set(self.items.get(collection, {}))

    async def create_item(self, collection: str, data: dict) -> dict:
        item_id = data["id"]
        if (collection, item_id) in self.reject:
            raise RemoteValidationError(f"Invalid payload for {item_id}", status_code=400)
        bucket = self.items.setdefault(collection, {})
        if item_id in bucket:
            raise RemoteValidationError(f"Duplicate key {item_id}", status_code=400)
        bucket[item_id] = dict(data)
        self.created.append((collection, item_id))
        return dict(data)

    async def update_item(self, collection: str, item_id, data: dict) -> dict:
        if (collection, item_id) in self.reject:
            raise RemoteValidationError(f"Invalid payload for {item_id}", status_code=400)
        bucket = self.items.setdefault(collection, {})
        if item_id not in bucket:
            raise RemoteValidationError(f"{item_id} not found", status_code=404)
        bucket[item_id].update(data)
        self.updated.append((collection, item_id))
        return dict(bucket[item_id])

    async def close(self) -> None:
        self.closed = True


def write_dump(dump_path: Path, collection: str, records: list[dict]) -> Path:
    dump_path.mkdir(parents=True, exist_ok=True)
    path = dump_path / f"{collection}.json"
    path.write_text(json.dumps(records))
    return path


@pytest.fixture
def fake_client() -> FakeDirectusClient:
    return FakeDirectusClient()


@pytest.fixture
def make_restorers(tmp_path):
    """Factory: ``make_restorers(client, [(CollectionDef, records), ...])``.

    Writes each collection dump under ``tmp_path / "collections"`` and
    returns restorers sharing one ``IdRegistry``, in the given order.
    """

    def _make(client, collections: list[tuple[CollectionDef, list[dict]]]):
        dump_path = tmp_path / "collections"
        registry = IdRegistry(client)
        restorers = []
        for definition, records in collections:
            write_dump(dump_path, definition.name, records)
            store = RecordStore(dump_path, definition.name, pk=definition.pk)
            restorers.append(create_restorer(definition, store, client, registry))
        return restorers

    return _make
