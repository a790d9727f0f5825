"""Application context factory.

Components are wired explicitly: the remote client is built from the
instance settings, and the snapshot client and collection restorers receive
it as a constructor argument. Tests build an ``AppContext`` around a fake
client the same way.

Usage:
    from directus_sync.config import load_config
    from directus_sync.factory import create_context

    context = create_context(load_config())
    try:
        await context.snapshots.restore()
        report = await context.restore_driver().run()
    finally:
        await context.close()
"""

from dataclasses import dataclass, field

from directus_sync.adapters.base import DirectusClient
from directus_sync.adapters.http import AsyncDirectusAdapter
from directus_sync.collections.driver import RestoreDriver
from directus_sync.collections.restorer import (
    CollectionRestorer,
    IdRegistry,
    create_restorer,
)
from directus_sync.collections.store import RecordStore
from directus_sync.config.models import InstanceConfig, SyncConfig
from directus_sync.errors import ConfigError
from directus_sync.snapshot.client import SnapshotClient


def get_client(instance: InstanceConfig) -> DirectusClient:
    """Create the HTTP client for the configured instance.

    Raises:
        ConfigError: If neither a token nor e-mail/password is configured.
    """
    if not instance.token and not (instance.email and instance.password):
        raise ConfigError(
            "No credentials configured.\n"
            "Set [instance] token (or email and password) in directus-sync.toml, "
            "or DIRECTUS_TOKEN in the environment."
        )
    return AsyncDirectusAdapter(
        instance.url,
        token=instance.token,
        email=instance.email,
        password=instance.password,
        timeout=instance.timeout,
        retries=instance.retries,
    )


def build_restorers(config: SyncConfig, client: DirectusClient) -> list[CollectionRestorer]:
    """One restorer per configured collection, sharing a fresh ``IdRegistry``."""
    registry = IdRegistry(client)
    restorers = []
    for definition in config.collections.definitions():
        store = RecordStore(
            config.collections.dump_path,
            definition.name,
            pk=definition.pk,
            split_files=config.collections.split_files,
        )
        restorers.append(create_restorer(definition, store, client, registry))
    return restorers


@dataclass
class AppContext:
    """Everything a command needs for one run."""

    config: SyncConfig
    client: DirectusClient
    snapshots: SnapshotClient
    restorers: list[CollectionRestorer] = field(default_factory=list)

    def restore_driver(self, max_passes: int | None = None) -> RestoreDriver:
        if max_passes is None:
            max_passes = self.config.collections.max_passes
        return RestoreDriver(self.restorers, max_passes=max_passes)

    async def close(self) -> None:
        await self.client.close()


def create_context(config: SyncConfig, client: DirectusClient | None = None) -> AppContext:
    """Build an ``AppContext``; ``client`` defaults to ``get_client()``."""
    if client is None:
        client = get_client(config.instance)
    return AppContext(
        config=config,
        client=client,
        snapshots=SnapshotClient(
            client,
            dump_path=config.snapshot.dump_path,
            split_files=config.snapshot.split_files,
        ),
        restorers=build_restorers(config, client),
    )
