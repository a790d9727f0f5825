"""JSON record store for one collection.

A collection dump is either a single JSON array (``<dump_path>/<name>.json``)
or a directory holding one JSON object per record
(``<dump_path>/<name>/<id>.json``). Loading detects the layout on disk;
saving uses the layout selected by ``split_files``.

Usage:
    from directus_sync.collections.store import RecordStore

    store = RecordStore("./dump/collections", "roles")
    records = store.load()
    store.save(records)
"""

import json
import shutil
from pathlib import Path

from directus_sync.errors import MalformedDumpError


class RecordStore:
    """Loads and saves the records of one collection.

    In the split layout records load in file-name order, numeric
    identifiers sorted numerically.

    Args:
        dump_path: Directory holding all collection dumps.
        collection: Collection name (also the file/directory name).
        pk: Identifier field, used to name files in split mode.
        split_files: Save one file per record instead of one array.
    """

    def __init__(
        self,
        dump_path: str | Path,
        collection: str,
        pk: str = "id",
        split_files: bool = False,
    ) -> None:
        self.dump_path = Path(dump_path)
        self.collection = collection
        self.pk = pk
        self.split_files = split_files

    @property
    def file_path(self) -> Path:
        return self.dump_path / f"{self.collection}.json"

    @property
    def dir_path(self) -> Path:
        return self.dump_path / self.collection

    @property
    def exists(self) -> bool:
        return self.file_path.is_file() or self.dir_path.is_dir()

    def load(self) -> list[dict]:
        """Read every record of the collection.

        Returns:
            List of records; empty when nothing was dumped for the collection.

        Raises:
            MalformedDumpError: If a file is not valid JSON or has the wrong
                shape (array of objects, or one object per file).
        """
        if self.file_path.is_file():
            return self._load_array(self.file_path)
        if self.dir_path.is_dir():
            records = []
            for path in sorted(self.dir_path.glob("*.json"), key=_file_order):
                data = _read_json(path)
                if not isinstance(data, dict):
                    raise MalformedDumpError(path, "expected a JSON object")
                records.append(data)
            return records
        return []

    def _load_array(self, path: Path) -> list[dict]:
        data = _read_json(path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise MalformedDumpError(path, "expected a JSON array of records")
        for index, record in enumerate(data):
            if not isinstance(record, dict):
                raise MalformedDumpError(path, f"element {index} is not an object")
        return data

    def _file_stem(self, record: dict) -> str:
        """File name (without ``.json``) for ``record`` in split mode."""
        value = record.get(self.pk)
        if value is None or value == "":
            raise MalformedDumpError(self.dir_path, f"record without '{self.pk}' cannot be split")
        stem = str(value)
        if stem in (".", "..") or "/" in stem or "\\" in stem or "\0" in stem:
            raise MalformedDumpError(
                self.dir_path, f"'{self.pk}' value {stem!r} is not usable as a file name"
            )
        return stem

    def save(self, records: list[dict]) -> int:
        """Write the collection, replacing any previous dump of it.

        In split mode every record must carry a file-name-safe identifier;
        this is checked before anything on disk is touched.

        Returns:
            Number of files written.

        Raises:
            MalformedDumpError: If a record cannot be written in split mode.
        """
        stems = [self._file_stem(r) for r in records] if self.split_files else []

        if self.file_path.exists():
            self.file_path.unlink()
        if self.dir_path.exists():
            shutil.rmtree(self.dir_path)

        if self.split_files:
            self.dir_path.mkdir(parents=True, exist_ok=True)
            for stem, record in zip(stems, records):
                path = self.dir_path / f"{stem}.json"
                path.write_text(json.dumps(record, indent=2, default=str), encoding="utf-8")
            return len(records)

        self.dump_path.mkdir(parents=True, exist_ok=True)
        self.file_path.write_text(json.dumps(records, indent=2, default=str), encoding="utf-8")
        return 1


def _file_order(path: Path) -> tuple:
    """Numeric stems in numeric order, then the rest lexically."""
    if path.stem.isdecimal():
        return (0, int(path.stem), path.stem)
    return (1, 0, path.stem)


def _read_json(path: Path):
    """Parse ``path``; an empty (whitespace only) file reads as ``None``."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        if not text.strip():
            return None
        return json.loads(text)
    except UnicodeDecodeError as e:
        raise MalformedDumpError(path, f"not valid UTF-8 ({e.reason})") from e
    except json.JSONDecodeError as e:
        raise MalformedDumpError(path, f"invalid JSON ({e})") from e
