"""Tests for the durable key/value storage backends."""

import pytest

from linguaflow.exceptions import StorageError
from linguaflow.factory import StorageFactory, create_storage
from linguaflow.services import storage as storage_module
from linguaflow.services.storage import JsonFileStorage, MemoryStorage, SQLiteStorage


@pytest.fixture(params=["memory", "json", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    if request.param == "json":
        return JsonFileStorage(str(tmp_path / "store.json"))
    return SQLiteStorage(str(tmp_path / "store.db"))


class TestContract:
    """Every backend honours the same key/value contract."""

    def test_missing_key_is_none(self, backend):
        assert backend.get_item("nope") is None

    def test_set_overwrite_remove(self, backend):
        backend.set_item("k", "v1")
        backend.set_item("k", "v2")
        assert backend.get_item("k") == "v2"

        backend.remove_item("k")
        assert backend.get_item("k") is None
        backend.remove_item("k")

    def test_set_many_and_clear(self, backend):
        backend.set_many({"a": "1", "b": "2"})
        assert backend.get_item("a") == "1"
        assert backend.get_item("b") == "2"

        backend.clear()
        assert backend.get_item("a") is None

    def test_unicode_values(self, backend):
        backend.set_item("card", '{"front": "你好", "reading": "nǐ hǎo"}')
        assert "你好" in backend.get_item("card")


class TestJsonFileStorage:
    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        JsonFileStorage(str(path)).set_item("linguaflow_onboarded", "true")

        assert JsonFileStorage(str(path)).get_item("linguaflow_onboarded") == "true"

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            JsonFileStorage(str(path))

    def test_failed_write_rolls_back(self, tmp_path, monkeypatch):
        store = JsonFileStorage(str(tmp_path / "store.json"))
        store.set_item("k", "old")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(storage_module.os, "replace", broken_replace)

        with pytest.raises(StorageError):
            store.set_item("k", "new")
        assert store.get_item("k") == "old"
        assert not list(tmp_path.glob("*.tmp"))


class TestSQLiteStorage:
    def test_survives_reopen(self, tmp_path):
        path = str(tmp_path / "store.db")
        SQLiteStorage(path).set_many({"a": "1"})

        assert SQLiteStorage(path).get_item("a") == "1"


class TestFactory:
    def test_known_backends(self):
        assert set(StorageFactory.get_available_backends()) >= {"memory", "json", "sqlite"}
        assert isinstance(create_storage("memory"), MemoryStorage)

    def test_sqlite_with_path(self, tmp_path):
        store = create_storage("SQLITE", db_path=str(tmp_path / "x.db"))
        assert isinstance(store, SQLiteStorage)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_storage("floppy")
