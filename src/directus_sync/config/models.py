"""Pydantic models for directus-sync configuration."""

from pydantic import BaseModel, Field

from directus_sync.collections.models import DEFAULT_COLLECTIONS, CollectionDef


# ============================================================================
# Configuration Models
# ============================================================================


class InstanceConfig(BaseModel):
    """Connection settings for the Directus instance."""

    url: str = "http://localhost:8055"
    token: str | None = None
    email: str | None = None
    password: str | None = None
    timeout: float = 30.0  # seconds, per request
    retries: int = 2       # extra attempts on connectivity failures


class SnapshotConfig(BaseModel):
    """Where and how the schema snapshot is dumped."""

    dump_path: str = "./directus-config/snapshot"
    split_files: bool = True


class CollectionsConfig(BaseModel):
    """Where collection data is dumped and which collections take part."""

    dump_path: str = "./directus-config/collections"
    split_files: bool = False
    max_passes: int = 0  # 0 = total record count
    include: list[str] | None = None
    exclude: list[str] = Field(default_factory=list)
    custom: list[CollectionDef] = Field(default_factory=list)

    def definitions(self) -> list[CollectionDef]:
        """Collections in restore order: defaults first, then custom ones.

        A custom entry with the same name as a default replaces it in place.
        """
        custom = {c.name: c for c in self.custom}
        result = [custom.pop(d.name, d) for d in DEFAULT_COLLECTIONS]
        result.extend(custom.values())

        if self.include is not None:
            result = [d for d in result if d.name in self.include]
        return [d for d in result if d.name not in self.exclude]


class SyncConfig(BaseModel):
    """Complete configuration from directus-sync.toml."""

    instance: InstanceConfig = Field(default_factory=InstanceConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    collections: CollectionsConfig = Field(default_factory=CollectionsConfig)
