"""Collection restorers: dependency-aware upsert of dumped records.

A restorer owns the records of one collection for the duration of a run.
It writes every record whose dependency references resolve and defers the
rest, so the restore driver can call it again on the next pass.

Identifiers known to exist are tracked in a shared ``IdRegistry``: records
that already exist on the instance (fetched once per collection) plus
records applied earlier in this run.

Usage:
    from directus_sync.collections.restorer import IdRegistry, create_restorer
    from directus_sync.collections.store import RecordStore

    registry = IdRegistry(client)
    restorer = create_restorer(definition, RecordStore(path, "users"),
                               client, registry)
    restorer.load()
    await restorer.clean_up()
    retry = await restorer.restore()
"""

import logging
from typing import Any

from directus_sync.adapters.base import DirectusClient
from directus_sync.collections.models import (
    CollectionDef,
    CollectionSummary,
    DependencyRef,
    RestoreOutcome,
)
from directus_sync.collections.store import RecordStore
from directus_sync.errors import DependencyUnresolved, MalformedDumpError

logger = logging.getLogger(__name__)

# Value the instance returns in place of secrets (passwords, tokens)
MASKED_VALUE = "**********"


class IdRegistry:
    """Identifiers known per collection during one restore run.

    Args:
        client: Remote client used to fetch existing identifiers.
    """

    def __init__(self, client: DirectusClient) -> None:
        self._client = client
        self._pks: dict[str, str] = {}
        self._dumped: dict[str, set] = {}
        self._remote: dict[str, set] = {}
        self._applied: dict[str, set] = {}

    def register_dump(self, collection: str, pk: str, ids: set) -> None:
        """Record the identifiers present in a collection's dump."""
        self._pks[collection] = pk
        self._dumped[collection] = set(ids)

    def dumped(self, collection: str) -> set:
        return self._dumped.get(collection, set())

    async def remote_ids(self, collection: str) -> set:
        """Identifiers existing on the instance (fetched once, then cached)."""
        if collection not in self._remote:
            pk = self._pks.get(collection, "id")
            self._remote[collection] = set(await self._client.list_ids(collection, pk=pk))
            logger.debug(
                "Found %d existing record(s) in %s",
                len(self._remote[collection]), collection,
            )
        return self._remote[collection]

    def mark_applied(self, collection: str, item_id: Any) -> None:
        self._applied.setdefault(collection, set()).add(item_id)
        if collection in self._remote:
            self._remote[collection].add(item_id)

    async def exists(self, collection: str, item_id: Any) -> bool:
        """Whether ``item_id`` is already present in ``collection``."""
        if item_id in self._applied.get(collection, set()):
            return True
        return item_id in await self.remote_ids(collection)


class CollectionRestorer:
    """Generic restorer driven by a ``CollectionDef``.

    Subclasses only override ``clean_up`` for cleanup that cannot be
    expressed declaratively.

    Args:
        definition: Collection name, identifier and dependency references.
        store: Record store backing the collection dump.
        client: Remote client used for writes.
        registry: Shared identifier registry for the run.
    """

    def __init__(
        self,
        definition: CollectionDef,
        store: RecordStore,
        client: DirectusClient,
        registry: IdRegistry,
    ) -> None:
        self.definition = definition
        self.store = store
        self.client = client
        self.registry = registry
        self.outcomes: list[RestoreOutcome] = []
        self._records: dict[Any, dict] = {}
        self._applied: set = set()
        self._created = 0
        self._updated = 0
        self._loaded = False

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def pk(self) -> str:
        return self.definition.pk

    @property
    def records(self) -> list[dict]:
        return list(self._records.values())

    @property
    def pending(self) -> list[Any]:
        """Identifiers of records not applied yet."""
        return [i for i in self._records if i not in self._applied]

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Read the dump once and register its identifiers.

        Returns:
            Number of records loaded.

        Raises:
            MalformedDumpError: If the dump is unreadable, a record lacks its
                identifier, or an identifier appears twice.
        """
        if self._loaded:
            return len(self._records)

        for record in self.store.load():
            item_id = record.get(self.pk)
            if item_id is None:
                raise MalformedDumpError(
                    self.store.file_path, f"{self.name} record missing '{self.pk}'"
                )
            if item_id in self._records:
                raise MalformedDumpError(
                    self.store.file_path, f"duplicate {self.name} '{self.pk}' {item_id!r}"
                )
            self._records[item_id] = record

        self.registry.register_dump(self.name, self.pk, set(self._records))
        self._loaded = True
        logger.debug("Loaded %d %s record(s)", len(self._records), self.name)
        return len(self._records)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def _is_dangling(self, ref: DependencyRef, item_id: Any, target: Any) -> bool:
        if ref.collection == self.name and target == item_id:
            return False
        if target in self.registry.dumped(ref.collection):
            return False
        return not await self.registry.exists(ref.collection, target)

    async def clean_up(self) -> int:
        """Null nullable references pointing at records that exist nowhere.

        In list-valued references only the dangling elements are removed.

        A value is dangling when it is neither in the target collection's
        dump nor on the instance. Non-nullable references are left alone;
        they keep the record deferred instead.

        Returns:
            Number of values changed (0 on a clean record set).
        """
        changed = 0
        for item_id, record in self._records.items():
            for ref in self.definition.refs:
                if not ref.nullable:
                    continue
                value = record.get(ref.field)
                if value is None or isinstance(value, dict):
                    continue
                if isinstance(value, list):
                    kept = []
                    for target in value:
                        if target is None or isinstance(target, dict) or not (
                            await self._is_dangling(ref, item_id, target)
                        ):
                            kept.append(target)
                            continue
                        logger.info(
                            "%s %s: %s -> %s:%s is dangling, removed",
                            self.name, item_id, ref.field, ref.collection, target,
                        )
                        changed += 1
                    if len(kept) != len(value):
                        record[ref.field] = kept
                    continue
                if not await self._is_dangling(ref, item_id, value):
                    continue
                logger.info(
                    "%s %s: %s -> %s:%s is dangling, cleared",
                    self.name, item_id, ref.field, ref.collection, value,
                )
                record[ref.field] = None
                changed += 1
        return changed

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def _check_refs(self, item_id: Any, record: dict) -> None:
        """Raise ``DependencyUnresolved`` for the first reference that is missing."""
        for ref in self.definition.refs:
            value = record.get(ref.field)
            if value is None:
                continue
            values = value if isinstance(value, list) else [value]
            for target in values:
                if target is None or isinstance(target, dict):
                    continue
                if ref.collection == self.name and target == item_id:
                    continue
                if not await self.registry.exists(ref.collection, target):
                    raise DependencyUnresolved(ref.collection, ref.field, target)

    def prepare(self, record: dict) -> dict:
        """Payload written to the instance for ``record``."""
        excluded = set(self.definition.exclude_fields)
        return {k: v for k, v in record.items() if k not in excluded}

    async def restore(self) -> bool:
        """Write every pending record whose references resolve.

        Existing records are updated, missing ones created, both keyed by the
        identifier field. Remote errors propagate to the caller.

        Returns:
            ``True`` if at least one record was deferred and another pass is
            needed, ``False`` once every record has been applied.
        """
        outcome = RestoreOutcome(collection=self.name)
        pending = self.pending
        if not pending:
            self.outcomes.append(outcome)
            return False

        existing = await self.registry.remote_ids(self.name)

        for item_id in pending:
            record = self._records[item_id]
            try:
                await self._check_refs(item_id, record)
            except DependencyUnresolved as e:
                logger.debug("%s %s deferred: %s", self.name, item_id, e)
                outcome.deferred += 1
                continue

            payload = self.prepare(record)
            if item_id in existing:
                payload.pop(self.pk, None)
                await self.client.update_item(self.name, item_id, payload)
                outcome.updated += 1
                self._updated += 1
            else:
                await self.client.create_item(self.name, payload)
                outcome.created += 1
                self._created += 1

            outcome.applied += 1
            self._applied.add(item_id)
            self.registry.mark_applied(self.name, item_id)

        self.outcomes.append(outcome)
        if outcome.applied or outcome.deferred:
            logger.info(
                "%s: %d applied (%d created, %d updated), %d deferred",
                self.name, outcome.applied, outcome.created,
                outcome.updated, outcome.deferred,
            )
        return outcome.deferred > 0

    def summary(self) -> CollectionSummary:
        return CollectionSummary(
            collection=self.name,
            total=len(self._records),
            created=self._created,
            updated=self._updated,
            pending=len(self.pending),
        )

    # ------------------------------------------------------------------
    # Dump
    # ------------------------------------------------------------------

    async def dump(self) -> int:
        """Fetch every record from the instance and save it to the store.

        Returns:
            Number of files written.
        """
        records = await self.client.list_items(self.name)
        written = self.store.save(records)
        logger.info("Dumped %d %s record(s)", len(records), self.name)
        return written


class UsersRestorer(CollectionRestorer):
    """Users: never write masked secrets back to the instance."""

    secret_fields = ("password", "token", "tfa_secret")

    async def clean_up(self) -> int:
        changed = await super().clean_up()
        for record in self._records.values():
            for field in self.secret_fields:
                if record.get(field) == MASKED_VALUE:
                    del record[field]
                    changed += 1
        return changed


class PermissionsRestorer(CollectionRestorer):
    """Permissions: drop the ones the instance generates itself."""

    async def clean_up(self) -> int:
        changed = await super().clean_up()
        system_ids = [i for i, r in self._records.items() if r.get("system") is True]
        for item_id in system_ids:
            del self._records[item_id]
        if system_ids:
            logger.info("Skipping %d system permission(s)", len(system_ids))
            self.registry.register_dump(self.name, self.pk, set(self._records))
        return changed + len(system_ids)


RESTORER_TYPES: dict[str, type[CollectionRestorer]] = {
    "users": UsersRestorer,
    "directus_users": UsersRestorer,
    "permissions": PermissionsRestorer,
    "directus_permissions": PermissionsRestorer,
}


def create_restorer(
    definition: CollectionDef,
    store: RecordStore,
    client: DirectusClient,
    registry: IdRegistry,
) -> CollectionRestorer:
    """Build the restorer variant registered for ``definition.name``."""
    restorer_type = RESTORER_TYPES.get(definition.name, CollectionRestorer)
    return restorer_type(definition, store, client, registry)
