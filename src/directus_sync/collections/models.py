"""Collection models for declarative dependency-aware restore.

Each collection declares its identifier field and the fields that reference
records of other collections (or of itself). The restore loop uses these
declarations to decide when a record can be written.

Usage:
    from directus_sync.collections.models import CollectionDef, DependencyRef

    roles = CollectionDef(name="roles",
                          refs=[DependencyRef(field="parent", collection="roles",
                                              nullable=True)])
    users = CollectionDef(name="users",
                          refs=[DependencyRef(field="role", collection="roles")])
"""

from pydantic import BaseModel, Field


class DependencyRef(BaseModel):
    """A field whose value is the identifier of another record."""

    field: str              # field on the referencing record
    collection: str         # collection holding the referenced record
    nullable: bool = False  # cleanup may null the value when it dangles


class CollectionDef(BaseModel):
    """Definition of a collection for dump/restore operations."""

    name: str                                            # collection name
    pk: str = "id"                                       # identifier field
    refs: list[DependencyRef] = Field(default_factory=list)
    exclude_fields: list[str] = Field(default_factory=list)  # never written back


class RestoreOutcome(BaseModel):
    """Result of one restore pass over one collection."""

    collection: str
    applied: int = 0     # records written this pass (created + updated)
    created: int = 0
    updated: int = 0
    deferred: int = 0    # records waiting on an unresolved reference


class CollectionSummary(BaseModel):
    """Totals for one collection over a whole restore run."""

    collection: str
    total: int = 0
    created: int = 0
    updated: int = 0
    pending: int = 0


# Directus system collections, in restore order (referenced before referencing)
DEFAULT_COLLECTIONS: list[CollectionDef] = [
    CollectionDef(
        name="roles",
        refs=[DependencyRef(field="parent", collection="roles", nullable=True)],
        exclude_fields=["users", "children", "policies"],
    ),
    CollectionDef(
        name="policies",
        exclude_fields=["roles", "users", "permissions"],
    ),
    CollectionDef(
        name="permissions",
        refs=[DependencyRef(field="policy", collection="policies")],
    ),
    CollectionDef(
        name="users",
        refs=[DependencyRef(field="role", collection="roles", nullable=True)],
        exclude_fields=["last_access", "last_page", "policies"],
    ),
    CollectionDef(
        name="folders",
        refs=[DependencyRef(field="parent", collection="folders")],
    ),
    CollectionDef(
        name="files",
        refs=[
            DependencyRef(field="folder", collection="folders"),
            DependencyRef(field="uploaded_by", collection="users", nullable=True),
            DependencyRef(field="modified_by", collection="users", nullable=True),
        ],
    ),
    CollectionDef(
        name="presets",
        refs=[
            DependencyRef(field="user", collection="users", nullable=True),
            DependencyRef(field="role", collection="roles", nullable=True),
        ],
    ),
]
