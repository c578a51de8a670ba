"""Build the configured durable store."""

from pulsetrack.config import PipelineConfig, StorageBackend
from pulsetrack.storage.base import KeyValueStore, MemoryStore
from pulsetrack.storage.dynamodb import DynamoDBStore
from pulsetrack.storage.file import JsonFileStore


def create_store(config: PipelineConfig) -> KeyValueStore:
    """Create the durable store selected by ``config.storage_backend``.

    Keys are partitioned by ``config.storage_namespace``; the in-memory
    backend lives only as long as the process.
    """
    backend = StorageBackend(config.storage_backend)
    if backend == StorageBackend.FILE:
        return JsonFileStore(config.storage_path, namespace=config.storage_namespace)
    if backend == StorageBackend.DYNAMODB:
        return DynamoDBStore(table_name=config.table_name, namespace=config.storage_namespace)
    return MemoryStore()
