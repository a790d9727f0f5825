"""Pydantic models for schema snapshots and diffs."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Snapshot(BaseModel):
    """Schema snapshot of an instance.

    ``collections``, ``fields`` and ``relations`` are kept as raw dicts; the
    remaining top-level keys (``version``, ``directus``, ``vendor``, ...) are
    the snapshot info and are preserved as extra attributes.
    """

    model_config = ConfigDict(extra="allow")

    collections: list[dict[str, Any]] = Field(default_factory=list)
    fields: list[dict[str, Any]] = Field(default_factory=list)
    relations: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def info(self) -> dict[str, Any]:
        """Top-level keys other than collections/fields/relations."""
        return dict(self.model_extra or {})

    def normalized(self) -> "Snapshot":
        """Copy with a stable ordering of collections, fields and relations."""
        return Snapshot(
            **self.info,
            collections=sorted(self.collections, key=lambda c: str(c.get("collection", ""))),
            fields=sorted(
                self.fields,
                key=lambda f: (str(f.get("collection", "")), str(f.get("field", ""))),
            ),
            relations=sorted(
                self.relations,
                key=lambda r: (str(r.get("collection", "")), str(r.get("field", ""))),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()


class SnapshotPlan(BaseModel):
    """Number of changes a diff would apply, per category."""

    collections: int = 0
    fields: int = 0
    relations: int = 0

    @property
    def total(self) -> int:
        return self.collections + self.fields + self.relations

    @property
    def has_changes(self) -> bool:
        return self.total > 0

    @classmethod
    def from_diff(cls, diff: dict[str, Any] | None) -> "SnapshotPlan":
        if not diff:
            return cls()
        changes = diff.get("diff") or {}
        return cls(
            collections=len(changes.get("collections") or []),
            fields=len(changes.get("fields") or []),
            relations=len(changes.get("relations") or []),
        )
