"""Offline validation of collection data dumps.

Checks that every declared collection dump parses, that each record has a
non-empty identifier, that identifiers are unique, and reports references
to records missing from the dump as warnings (they may still exist on the
instance).

This module is **sync** -- it only reads local JSON files.

Usage:
    from directus_sync.collections.validate import validate_dump

    report = validate_dump("./dump/collections", definitions)
    if report["errors"]:
        raise SystemExit(1)
"""

from pathlib import Path

from directus_sync.collections.models import CollectionDef
from directus_sync.collections.store import RecordStore
from directus_sync.errors import MalformedDumpError


def validate_dump(dump_path: str | Path, definitions: list[CollectionDef]) -> dict:
    """Validate the data dumps of ``definitions`` under ``dump_path``.

    Args:
        dump_path: Directory holding the collection dumps.
        definitions: Collections to check.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        ``warnings`` (list[str]) and ``counts`` (records per collection).
    """
    errors: list[str] = []
    warnings: list[str] = []
    counts: dict[str, int] = {}
    ids: dict[str, set] = {}
    loaded: dict[str, list[dict]] = {}

    for definition in definitions:
        store = RecordStore(dump_path, definition.name, pk=definition.pk)
        if not store.exists:
            warnings.append(f"No dump for {definition.name}")
        try:
            records = store.load()
        except MalformedDumpError as e:
            errors.append(str(e))
            continue

        seen: set = set()
        for index, record in enumerate(records):
            item_id = record.get(definition.pk)
            if item_id is None or item_id == "":
                errors.append(
                    f"{definition.name} record #{index} missing '{definition.pk}'"
                )
                continue
            if item_id in seen:
                errors.append(f"{definition.name} has duplicate '{definition.pk}' {item_id!r}")
            seen.add(item_id)

        counts[definition.name] = len(records)
        ids[definition.name] = seen
        loaded[definition.name] = records

    # References to records absent from the dump
    for definition in definitions:
        for record in loaded.get(definition.name, []):
            for ref in definition.refs:
                value = record.get(ref.field)
                if value is None or ref.collection not in ids:
                    continue
                values = value if isinstance(value, list) else [value]
                for target in values:
                    if isinstance(target, (dict, list)) or target is None:
                        continue
                    if target not in ids[ref.collection]:
                        warnings.append(
                            f"Orphaned {definition.name} "
                            f"'{record.get(definition.pk, 'unknown')}': "
                            f"{ref.field} -> {ref.collection}:{target} not in dump"
                        )

    return {
        "valid": not errors,
        "errors": errors,
        "warnings": warnings,
        "counts": counts,
    }
