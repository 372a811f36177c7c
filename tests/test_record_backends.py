try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import sqlite3
from pathlib import Path

import pytest

from salla_relay.clients import JSONFileStore, SQLiteStore
from salla_relay.core.errors import CorruptRecordError


def test_put_get_delete(backend) -> None:
    item = {"pk": "merchant#1", "sk": "token#salla", "value": 1}
    backend.put_item(item)

    assert backend.get_item(partition_key="merchant#1", sort_key="token#salla") == item
    assert backend.get_item(partition_key="merchant#1", sort_key="installation#salla") is None
    assert backend.delete_item(partition_key="merchant#1", sort_key="token#salla") is True
    assert backend.delete_item(partition_key="merchant#1", sort_key="token#salla") is False
    assert backend.get_item(partition_key="merchant#1", sort_key="token#salla") is None


def test_put_requires_keys(backend) -> None:
    with pytest.raises(ValueError):
        backend.put_item({"pk": "merchant#1"})


def test_put_overwrites(backend) -> None:
    backend.put_item({"pk": "merchant#1", "sk": "token#salla", "value": 1})
    backend.put_item({"pk": "merchant#1", "sk": "token#salla", "value": 2})

    assert backend.get_item(partition_key="merchant#1", sort_key="token#salla")["value"] == 2
    assert len(backend.scan_sort_key(sort_key="token#salla")) == 1


def test_scan_only_returns_requested_sort_key(backend) -> None:
    backend.put_item({"pk": "merchant#1", "sk": "token#salla"})
    backend.put_item({"pk": "merchant#2", "sk": "token#salla"})
    backend.put_item({"pk": "merchant#2", "sk": "installation#salla"})

    scanned = backend.scan_sort_key(sort_key="token#salla")
    assert sorted(item["pk"] for item in scanned) == ["merchant#1", "merchant#2"]


def test_sqlite_creates_parent_directory(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "dir" / "tokens.db"
    SQLiteStore(str(db_path))
    assert db_path.exists()


def test_sqlite_flags_undecodable_rows(tmp_path: Path) -> None:
    db_path = tmp_path / "tokens.db"
    store = SQLiteStore(str(db_path))
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "INSERT INTO kv_records (pk, sk, data) VALUES (?, ?, ?)",
            ("merchant#9", "token#salla", "{not json"),
        )
    conn.close()

    with pytest.raises(CorruptRecordError):
        store.get_item(partition_key="merchant#9", sort_key="token#salla")
    scanned = store.scan_sort_key(sort_key="token#salla")
    assert scanned[0]["pk"] == "merchant#9"
    assert "error" in scanned[0]


def test_file_store_layout_and_no_leftover_temp_files(tmp_path: Path) -> None:
    store = JSONFileStore(str(tmp_path / "tokens"))
    store.put_item({"pk": "merchant#693104445", "sk": "token#salla", "n": 1})
    store.put_item({"pk": "merchant#693104445", "sk": "token#salla", "n": 2})

    merchant_dir = tmp_path / "tokens" / "merchant_693104445"
    assert [path.name for path in merchant_dir.iterdir()] == ["token_salla.json"]


def test_file_store_removes_empty_merchant_directory(tmp_path: Path) -> None:
    store = JSONFileStore(str(tmp_path / "tokens"))
    store.put_item({"pk": "merchant#1", "sk": "token#salla"})
    store.put_item({"pk": "merchant#1", "sk": "installation#salla"})

    store.delete_item(partition_key="merchant#1", sort_key="token#salla")
    assert (tmp_path / "tokens" / "merchant_1").exists()
    store.delete_item(partition_key="merchant#1", sort_key="installation#salla")
    assert not (tmp_path / "tokens" / "merchant_1").exists()


def test_file_store_flags_corrupt_files(tmp_path: Path) -> None:
    store = JSONFileStore(str(tmp_path / "tokens"))
    corrupt = tmp_path / "tokens" / "merchant_5" / "token_salla.json"
    corrupt.parent.mkdir(parents=True)
    corrupt.write_text("[1, 2", encoding="utf-8")

    with pytest.raises(CorruptRecordError):
        store.get_item(partition_key="merchant#5", sort_key="token#salla")
    assert "error" in store.scan_sort_key(sort_key="token#salla")[0]


def test_file_store_rejects_path_traversal(tmp_path: Path) -> None:
    store = JSONFileStore(str(tmp_path / "tokens"))
    with pytest.raises(ValueError):
        store.get_item(partition_key="..", sort_key="token#salla")
