"""Durable key-value storage backends."""

from pulsetrack.storage.base import FallbackStore, KeyValueStore, MemoryStore, resilient
from pulsetrack.storage.dynamodb import DynamoDBStore
from pulsetrack.storage.factory import create_store
from pulsetrack.storage.file import JsonFileStore

__all__ = [
    "DynamoDBStore",
    "FallbackStore",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "create_store",
    "resilient",
]
