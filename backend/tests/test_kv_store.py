"""
Tests for the key-value store adapters.
"""

import json
import os

import pytest
from app.core.errors import PersistenceWarning
from app.storage.kv_store import FileKeyValueStore, MemoryKeyValueStore


class TestMemoryStore:
    """Test the in-memory store."""

    def test_get_set_remove(self):
        store = MemoryKeyValueStore()
        assert store.get("cart") is None

        store.set("cart", "[]")
        assert store.get("cart") == "[]"

        store.remove("cart")
        assert store.get("cart") is None

    def test_remove_missing_key(self):
        store = MemoryKeyValueStore()
        store.remove("nothing")
        assert store.keys() == []

    def test_rejects_non_string(self):
        with pytest.raises(PersistenceWarning):
            MemoryKeyValueStore().set("cart", ["not", "a", "string"])

    def test_subscribers_notified(self):
        store = MemoryKeyValueStore()
        events = []
        unsubscribe = store.subscribe(lambda key, value: events.append((key, value)))

        store.set("cart", "[1]")
        store.remove("cart")
        unsubscribe()
        store.set("cart", "[2]")

        assert events == [("cart", "[1]"), ("cart", None)]

    def test_failing_listener_does_not_break_writes(self):
        store = MemoryKeyValueStore()

        def broken(key, value):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.set("cart", "[]")

        assert store.get("cart") == "[]"


class TestFileStore:
    """Test the JSON file store."""

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "data" / "storage.json")
        FileKeyValueStore(path).set("whimsical-cart-v1", "[{\"id\": 1}]")

        assert FileKeyValueStore(path).get("whimsical-cart-v1") == "[{\"id\": 1}]"

    def test_unicode_values(self, tmp_path):
        store = FileKeyValueStore(str(tmp_path / "storage.json"))
        store.set("note", "Tulipán ✿ ひまわり")
        assert store.get("note") == "Tulipán ✿ ひまわり"

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("{not json", encoding="utf-8")
        store = FileKeyValueStore(str(path))

        assert store.get("cart") is None

        store.set("cart", "[]")
        assert json.loads(path.read_text(encoding="utf-8")) == {"cart": "[]"}

    def test_remove(self, tmp_path):
        store = FileKeyValueStore(str(tmp_path / "storage.json"))
        store.set("a", "1")
        store.set("b", "2")

        store.remove("a")

        assert store.keys() == ["b"]

    def test_no_temp_files_left(self, tmp_path):
        store = FileKeyValueStore(str(tmp_path / "storage.json"))
        store.set("a", "1")

        assert os.listdir(tmp_path) == ["storage.json"]

    def test_write_failure_raises_persistence_warning(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        store = FileKeyValueStore(str(blocker / "storage.json"))

        with pytest.raises(PersistenceWarning):
            store.set("cart", "[]")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
