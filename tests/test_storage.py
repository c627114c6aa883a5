"""
Tests for storage backends and atomic units of work
"""

import pytest
import threading
from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass

from accounttrack.errors import DuplicateRecordError, StoreError
from accounttrack.storage import InMemoryStorage, SQLiteStorage, StorageRecord


def _record(record_id="rec_001", **extra):
    data = {
        "id": record_id,
        "name": "Test Record",
        "amount": "100.50",
        "created_at": datetime.now(timezone.utc).isoformat(),
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    data.update(extra)
    return data


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    """Both backends; SQLite uses a file in a temp directory"""
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "accounttrack_test.db")
    yield backend
    backend.close()


class TestBasicOperations:
    """CRUD behaviour shared by every backend"""

    def test_save_and_load(self, storage):
        storage.save("items", "rec_001", _record())
        loaded = storage.load("items", "rec_001")
        assert loaded["name"] == "Test Record"
        assert loaded["amount"] == "100.50"

    def test_load_missing_returns_none(self, storage):
        assert storage.load("items", "nope") is None

    def test_save_is_upsert(self, storage):
        storage.save("items", "rec_001", _record(name="First"))
        storage.save("items", "rec_001", _record(name="Second"))
        assert storage.load("items", "rec_001")["name"] == "Second"
        assert storage.count("items") == 1

    def test_insert_rejects_duplicate_id(self, storage):
        storage.insert("items", "rec_001", _record())
        with pytest.raises(DuplicateRecordError):
            storage.insert("items", "rec_001", _record(name="Other"))
        assert storage.load("items", "rec_001")["name"] == "Test Record"

    def test_duplicate_is_a_store_error(self, storage):
        storage.insert("items", "rec_001", _record())
        with pytest.raises(StoreError):
            storage.insert("items", "rec_001", _record())

    def test_exists_and_delete(self, storage):
        storage.save("items", "rec_001", _record())
        assert storage.exists("items", "rec_001")
        assert storage.delete("items", "rec_001") is True
        assert not storage.exists("items", "rec_001")
        assert storage.delete("items", "rec_001") is False

    def test_find_by_fields(self, storage):
        storage.save("items", "a", _record("a", kind="x"))
        storage.save("items", "b", _record("b", kind="y"))
        storage.save("items", "c", _record("c", kind="x"))
        found = storage.find("items", {"kind": "x"})
        assert sorted(r["id"] for r in found) == ["a", "c"]
        assert storage.find("items", {"kind": "z"}) == []

    def test_clear_table_returns_count(self, storage):
        for i in range(3):
            storage.save("items", f"r{i}", _record(f"r{i}"))
        assert storage.clear_table("items") == 3
        assert storage.count("items") == 0
        assert storage.clear_table("items") == 0


class TestAtomic:
    """Units of work commit or roll back as a whole"""

    def test_commit(self, storage):
        with storage.atomic():
            storage.save("items", "a", _record("a"))
            storage.save("items", "b", _record("b"))
        assert storage.count("items") == 2

    def test_rollback_on_exception(self, storage):
        storage.save("items", "keep", _record("keep"))
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("items", "a", _record("a"))
                storage.delete("items", "keep")
                raise RuntimeError("boom")
        assert not storage.exists("items", "a")
        assert storage.exists("items", "keep")

    def test_nested_blocks_roll_back_with_outer(self, storage):
        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("items", "outer", _record("outer"))
                with storage.atomic():
                    storage.save("items", "inner", _record("inner"))
                raise ValueError("outer failure")
        assert storage.count("items") == 0

    def test_table_created_in_rolled_back_block_is_usable(self, storage):
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("fresh", "a", _record("a"))
                raise RuntimeError("boom")
        storage.save("fresh", "b", _record("b"))
        assert storage.count("fresh") == 1

    def test_atomic_blocks_serialize(self, storage):
        """Two threads doing read-modify-write never lose an update"""
        storage.save("counters", "c", {"id": "c", "value": 0})

        def bump():
            for _ in range(25):
                with storage.atomic():
                    current = storage.load("counters", "c")
                    storage.save("counters", "c", {"id": "c", "value": current["value"] + 1})

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert storage.load("counters", "c")["value"] == 100


class TestInMemoryIsolation:

    def test_loaded_records_are_copies(self):
        storage = InMemoryStorage()
        storage.save("items", "a", _record("a"))
        loaded = storage.load("items", "a")
        loaded["name"] = "mutated"
        assert storage.load("items", "a")["name"] == "Test Record"


class TestSQLitePersistence:

    def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "persist.db"
        first = SQLiteStorage(path)
        first.save("items", "a", _record("a"))
        first.close()

        second = SQLiteStorage(path)
        assert second.load("items", "a")["name"] == "Test Record"
        second.close()


@dataclass
class SampleRecord(StorageRecord):
    label: str
    amount: Decimal


class TestStorageRecord:

    def test_to_dict_serializes_values(self):
        now = datetime.now(timezone.utc)
        record = SampleRecord(id="s1", created_at=now, updated_at=now, label="x", amount=Decimal("12.34"))
        data = record.to_dict()
        assert data["amount"] == "12.34"
        assert data["created_at"] == now.isoformat()

    def test_from_dict_ignores_unknown_keys(self):
        now = datetime.now(timezone.utc)
        record = SampleRecord.from_dict({
            "id": "s1", "created_at": now.isoformat(), "updated_at": now.isoformat(),
            "label": "x", "amount": Decimal("1"), "legacy_field": True,
        })
        assert record.created_at == now
        assert record.label == "x"
