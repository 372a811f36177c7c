"""JSON-file record storage with the same interface as ``SQLiteStore``."""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from salla_relay.core.errors import CorruptRecordError, StorageError

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _segment(key: str) -> str:
    segment = _UNSAFE_CHARS.sub("_", key)
    if not segment or segment in {".", ".."}:
        raise ValueError(f"Key {key!r} cannot be used as a path segment")
    return segment


class JSONFileStore:
    """Store each (pk, sk) item as ``<root>/<pk>/<sk>.json``.

    Writes go to a temporary file in the target directory and are moved into
    place with ``os.replace`` so readers never observe a partial record.
    """

    def __init__(self, root: str) -> None:
        self._root = Path(root)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Unable to create record directory {self._root}") from exc

    @property
    def location(self) -> str:
        return str(self._root)

    def _path(self, partition_key: str, sort_key: str) -> Path:
        return self._root / _segment(partition_key) / f"{_segment(sort_key)}.json"

    @staticmethod
    def _read(path: Path) -> Optional[Dict[str, Any]]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Unable to read {path}") from exc
        try:
            item = json.loads(raw)
        except ValueError as exc:
            raise CorruptRecordError(f"Record {path.name} is not valid JSON") from exc
        if not isinstance(item, dict):
            raise CorruptRecordError(f"Record {path.name} is not a JSON object")
        return item

    def put_item(self, item: Dict[str, Any]) -> None:
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("Item must include 'pk' and 'sk' keys")

        path = self._path(pk, sk)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(item, handle, indent=2)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Unable to write {path}") from exc

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        return self._read(self._path(partition_key, sort_key))

    def delete_item(self, *, partition_key: str, sort_key: str) -> bool:
        path = self._path(partition_key, sort_key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Unable to delete {path}") from exc
        try:
            path.parent.rmdir()
        except OSError:
            # Other records for the merchant still live here.
            pass
        return True

    def scan_sort_key(self, *, sort_key: str) -> list[Dict[str, Any]]:
        """Return every item stored under ``sort_key`` across all partitions."""
        items: list[Dict[str, Any]] = []
        for path in sorted(self._root.glob(f"*/{_segment(sort_key)}.json")):
            try:
                item = self._read(path)
            except CorruptRecordError as exc:
                items.append({"pk": path.parent.name, "sk": sort_key, "error": str(exc)})
                continue
            if item is not None:
                items.append(item)
        return items


__all__ = ["JSONFileStore"]
