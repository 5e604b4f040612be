"""
Tests for storage backends and transaction support
"""

import pytest
import tempfile
from pathlib import Path
from dataclasses import dataclass
from enum import Enum

from lending_core.storage import (
    InMemoryStorage, SQLiteStorage, StorageRecord, create_storage
)


# Test data
test_data = {
    "id": "test_001",
    "name": "Test Record",
    "amount": 10050,
    "tags": ["a", "b"],
}


class Color(Enum):
    RED = "red"
    BLUE = "blue"


@dataclass
class Sample(StorageRecord):
    _enum_fields = {"color": Color}
    
    id: str
    color: Color
    amount: int = 0


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    if request.param == "memory":
        backend = InMemoryStorage()
        yield backend
        backend.close()
    else:
        with tempfile.TemporaryDirectory() as temp_dir:
            backend = SQLiteStorage(Path(temp_dir) / "test.db")
            yield backend
            backend.close()


class TestStorageInterface:
    """Test basic CRUD operations on both backends"""
    
    def test_basic_operations(self, storage):
        # Test save and load
        storage.save("test_table", "record_1", test_data)
        loaded = storage.load("test_table", "record_1")
        assert loaded == test_data
        
        # Test exists
        assert storage.exists("test_table", "record_1")
        assert not storage.exists("test_table", "non_existent")
        assert storage.load("test_table", "non_existent") is None
        
        # Test load_all
        storage.save("test_table", "record_2", {"id": "record_2", "data": "test"})
        all_records = storage.load_all("test_table")
        assert len(all_records) == 2
        
        # Test find
        results = storage.find("test_table", {"id": "test_001"})
        assert len(results) == 1
        assert results[0]["id"] == "test_001"
        assert storage.find("test_table", {"missing_key": 1}) == []
        
        # Test count
        assert storage.count("test_table") == 2
        
        # Test delete
        assert storage.delete("test_table", "record_1")
        assert not storage.delete("test_table", "record_1")
        assert not storage.exists("test_table", "record_1")
        assert storage.count("test_table") == 1
        
        # Test clear_table
        storage.clear_table("test_table")
        assert storage.count("test_table") == 0
    
    def test_large_integers_survive(self, storage):
        value = 2 ** 256 - 1
        storage.save("big", "x", {"value": value})
        assert storage.load("big", "x")["value"] == value
    
    def test_loaded_records_are_copies(self, storage):
        storage.save("test_table", "record_1", {"items": [1]})
        loaded = storage.load("test_table", "record_1")
        loaded["items"].append(2)
        assert storage.load("test_table", "record_1") == {"items": [1]}
    
    def test_next_id_starts_at_zero(self, storage):
        assert storage.next_id("loans") == 0
        assert storage.next_id("loans") == 1
        assert storage.next_id("programs") == 0
        assert storage.next_id("loans") == 2


class TestTransactions:
    """Test atomic() commit and rollback semantics"""
    
    def test_atomic_commits(self, storage):
        with storage.atomic():
            storage.save("accounts", "a", {"balance": 1})
            storage.save("accounts", "b", {"balance": 2})
        assert storage.count("accounts") == 2
    
    def test_atomic_rolls_back_on_error(self, storage):
        storage.save("accounts", "a", {"balance": 1})
        
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("accounts", "a", {"balance": 100})
                storage.save("accounts", "b", {"balance": 2})
                raise RuntimeError("boom")
        
        assert storage.load("accounts", "a") == {"balance": 1}
        assert not storage.exists("accounts", "b")
    
    def test_rollback_of_new_table(self, storage):
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("fresh", "a", {"x": 1})
                raise RuntimeError("boom")
        
        assert storage.count("fresh") == 0
        storage.save("fresh", "a", {"x": 2})
        assert storage.load("fresh", "a") == {"x": 2}
    
    def test_nested_inner_failure_keeps_outer_work(self, storage):
        with storage.atomic():
            storage.save("accounts", "outer", {"balance": 1})
            with pytest.raises(ValueError):
                with storage.atomic():
                    storage.save("accounts", "inner", {"balance": 2})
                    raise ValueError("inner")
            storage.save("accounts", "after", {"balance": 3})
        
        assert storage.exists("accounts", "outer")
        assert storage.exists("accounts", "after")
        assert not storage.exists("accounts", "inner")
    
    def test_nested_outer_failure_discards_inner_work(self, storage):
        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("accounts", "inner", {"balance": 2})
                raise RuntimeError("outer")
        
        assert not storage.exists("accounts", "inner")
    
    def test_next_id_rolls_back(self, storage):
        storage.next_id("loans")
        with pytest.raises(RuntimeError):
            with storage.atomic():
                assert storage.next_id("loans") == 1
                raise RuntimeError("boom")
        assert storage.next_id("loans") == 1


class TestStorageRecord:
    """Test record (de)serialization"""
    
    def test_enum_round_trip(self, storage):
        record = Sample(id="s1", color=Color.BLUE, amount=5)
        assert record.to_dict() == {"id": "s1", "color": "blue", "amount": 5}
        
        storage.save("samples", record.id, record.to_dict())
        restored = Sample.from_dict(storage.load("samples", "s1"))
        assert restored == record
    
    def test_unknown_keys_ignored(self):
        restored = Sample.from_dict({"id": "s2", "color": "red", "legacy": True})
        assert restored == Sample(id="s2", color=Color.RED)


class TestCreateStorage:
    """Test backend selection from configuration"""
    
    def test_in_memory(self):
        assert isinstance(create_storage("sqlite:///ignored.db", use_sqlite=False), InMemoryStorage)
    
    def test_sqlite_memory(self):
        storage = create_storage("sqlite:///", use_sqlite=True)
        assert isinstance(storage, SQLiteStorage)
        assert storage.db_path == ":memory:"
        storage.close()
    
    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            create_storage("postgresql://localhost/db", use_sqlite=True)
