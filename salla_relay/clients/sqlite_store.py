"""SQLite-backed record storage keyed by (pk, sk)."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from salla_relay.core.errors import CorruptRecordError, StorageError


class SQLiteStore:
    """Simple key-value store using a normalized table keyed by (pk, sk)."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        try:
            if self._db_path.parent and not self._db_path.parent.exists():
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Unable to open record store at {self._db_path}") from exc

    @property
    def location(self) -> str:
        return str(self._db_path)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=10.0)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_records (
                    pk TEXT NOT NULL,
                    sk TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (pk, sk)
                )
                """
            )

    @staticmethod
    def _decode(pk: str, sk: str, raw: str) -> Dict[str, Any]:
        try:
            item = json.loads(raw)
        except ValueError as exc:
            raise CorruptRecordError(f"Record {pk}/{sk} is not valid JSON") from exc
        if not isinstance(item, dict):
            raise CorruptRecordError(f"Record {pk}/{sk} is not a JSON object")
        return item

    def put_item(self, item: Dict[str, Any]) -> None:
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("Item must include 'pk' and 'sk' keys")

        data_json = json.dumps(item)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO kv_records (pk, sk, data)
                VALUES (?, ?, ?)
                ON CONFLICT(pk, sk) DO UPDATE SET data = excluded.data
                """,
                (pk, sk, data_json),
            )

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT data FROM kv_records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            ).fetchone()
        if not row:
            return None
        return self._decode(partition_key, sort_key, row["data"])

    def delete_item(self, *, partition_key: str, sort_key: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM kv_records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            )
            deleted = cursor.rowcount > 0
        return deleted

    def scan_sort_key(self, *, sort_key: str) -> list[Dict[str, Any]]:
        """Return every item stored under ``sort_key`` across all partitions.

        Rows that fail to decode come back as ``{"pk", "sk", "error"}``
        placeholders so callers can log and skip them.
        """
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT pk, data FROM kv_records WHERE sk = ? ORDER BY pk",
                (sort_key,),
            ).fetchall()
        items: list[Dict[str, Any]] = []
        for row in rows:
            try:
                items.append(self._decode(row["pk"], sort_key, row["data"]))
            except CorruptRecordError as exc:
                items.append({"pk": row["pk"], "sk": sort_key, "error": str(exc)})
        return items


__all__ = ["SQLiteStore"]
