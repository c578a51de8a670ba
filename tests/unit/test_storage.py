"""Tests for storage backends."""

import pytest

from pulsetrack.config import PipelineConfig
from pulsetrack.storage.base import FallbackStore, KeyValueStore, MemoryStore, resilient
from pulsetrack.storage.dynamodb import DynamoDBStore
from pulsetrack.storage.factory import create_store
from pulsetrack.storage.file import JsonFileStore
from pulsetrack.utils.exceptions import StorageUnavailableError


class BrokenStore(KeyValueStore):
    """Store whose backend is always unavailable."""

    backend = "broken"

    def __init__(self):
        self.calls = 0

    def get(self, key):
        self.calls += 1
        raise StorageUnavailableError(self.backend)

    def set(self, key, value):
        self.calls += 1
        raise StorageUnavailableError(self.backend)

    def delete(self, key):
        self.calls += 1
        raise StorageUnavailableError(self.backend)


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_values_are_copied(self):
        store = MemoryStore()
        value = {"items": [1]}

        store.set("k", value)
        value["items"].append(2)

        assert store.get("k") == {"items": [1]}

    def test_delete_and_keys(self):
        store = MemoryStore({"a": 1, "b": 2})

        store.delete("a")
        store.delete("missing")

        assert store.keys() == ["b"]
        assert store.get("a") is None


class TestJsonFileStore:
    """Tests for JsonFileStore."""

    def test_set_get_delete(self, tmp_path):
        store = JsonFileStore(tmp_path, namespace="ns")

        store.set("queue.events", [{"name": "page_view"}])

        assert store.get("queue.events") == [{"name": "page_view"}]
        assert (tmp_path / "ns" / "queue.events.json").exists()

        store.delete("queue.events")
        assert store.get("queue.events") is None

    def test_survives_new_instance(self, tmp_path):
        JsonFileStore(tmp_path).set("identity.visitor_id", "v-1")

        assert JsonFileStore(tmp_path).get("identity.visitor_id") == "v-1"

    def test_namespaces_are_isolated(self, tmp_path):
        JsonFileStore(tmp_path, namespace="a").set("key", 1)

        assert JsonFileStore(tmp_path, namespace="b").get("key") is None

    def test_corrupt_document_reads_as_missing(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.set("key", {"ok": True})
        (tmp_path / "pulsetrack" / "key.json").write_text("{not json")

        assert store.get("key") is None

    def test_unwritable_root_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = JsonFileStore(blocker)

        with pytest.raises(StorageUnavailableError):
            store.set("key", 1)


class TestDynamoDBStore:
    """Tests for DynamoDBStore."""

    def test_set_get_delete(self, dynamodb_table):
        store = DynamoDBStore(namespace="site-a")

        store.set("attribution.touchpoints", [{"source": "google", "timestamp": 1.5}])

        assert store.get("attribution.touchpoints") == [{"source": "google", "timestamp": 1.5}]

        item = dynamodb_table.get_item(Key={"PK": "PULSETRACK#site-a", "SK": "attribution.touchpoints"})["Item"]
        assert "google" in item["value"]

        store.delete("attribution.touchpoints")
        assert store.get("attribution.touchpoints") is None

    def test_namespaces_are_isolated(self, dynamodb_table):
        DynamoDBStore(namespace="a").set("key", 1)

        assert DynamoDBStore(namespace="b").get("key") is None

    def test_missing_table_raises_storage_unavailable(self, dynamodb_table):
        store = DynamoDBStore(table_name="does-not-exist")

        with pytest.raises(StorageUnavailableError):
            store.get("key")


class TestFallbackStore:
    """Tests for degradation to memory."""

    def test_degrades_and_keeps_working(self):
        primary = BrokenStore()
        store = FallbackStore(primary, name="durable")

        store.set("key", "value")

        assert store.degraded is True
        assert store.backend == "memory"
        assert store.get("key") == "value"

    def test_stops_calling_primary_once_degraded(self):
        primary = BrokenStore()
        store = FallbackStore(primary)

        store.get("key")
        store.set("key", 1)
        store.delete("key")

        assert primary.calls == 1

    def test_passes_through_when_healthy(self, tmp_path):
        primary = JsonFileStore(tmp_path)
        store = FallbackStore(primary)

        store.set("key", 1)

        assert store.degraded is False
        assert primary.get("key") == 1

    def test_resilient_does_not_double_wrap(self, tmp_path):
        memory = MemoryStore()
        wrapped = resilient(JsonFileStore(tmp_path))

        assert resilient(memory) is memory
        assert resilient(wrapped) is wrapped
        assert isinstance(wrapped, FallbackStore)


class TestCreateStore:
    """Tests for building the configured store."""

    def test_memory_by_default(self):
        assert isinstance(create_store(PipelineConfig()), MemoryStore)

    def test_file_backend(self, tmp_path):
        store = create_store(
            PipelineConfig(storage_backend="file", storage_path=str(tmp_path), storage_namespace="site-a")
        )

        store.set("key", 1)

        assert isinstance(store, JsonFileStore)
        assert (tmp_path / "site-a" / "key.json").exists()

    def test_dynamodb_backend(self, dynamodb_table):
        store = create_store(PipelineConfig(storage_backend="dynamodb", table_name="pulsetrack-test"))

        store.set("key", {"a": 1})

        assert isinstance(store, DynamoDBStore)
        assert store.get("key") == {"a": 1}


class TestCorruptDocuments:
    """Tests for documents that cannot be decoded."""

    def test_invalid_utf8_reads_as_missing(self, tmp_path):
        store = JsonFileStore(tmp_path)
        (tmp_path / "pulsetrack").mkdir()
        (tmp_path / "pulsetrack" / "queue.events.json").write_bytes(b"\xff\xfe\xfa garbage")

        assert store.get("queue.events") is None

        store.set("queue.events", [])
        assert store.get("queue.events") == []

    def test_non_json_dynamodb_value_reads_as_missing(self, dynamodb_table):
        dynamodb_table.put_item(Item={"PK": "PULSETRACK#pulsetrack", "SK": "key", "value": "{not json"})

        assert DynamoDBStore().get("key") is None

    def test_dynamodb_item_without_value_reads_as_missing(self, dynamodb_table):
        dynamodb_table.put_item(Item={"PK": "PULSETRACK#pulsetrack", "SK": "key"})

        assert DynamoDBStore().get("key") is None
