"""Key-value storage abstractions.

Every component owns its own keys; stores only need to persist
JSON-compatible values under string keys.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any

import structlog

from pulsetrack.utils.exceptions import StorageUnavailableError

logger = structlog.get_logger()


class KeyValueStore(ABC):
    """Abstract process-surviving key-value store."""

    backend: str = "abstract"

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Read a value, or None if the key is absent.

        Raises:
            StorageUnavailableError: If the backend cannot be read.
        """

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Write a JSON-compatible value.

        Raises:
            StorageUnavailableError: If the backend cannot be written.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key if present."""


class MemoryStore(KeyValueStore):
    """In-process store. Also the default session-scoped store."""

    backend = "memory"

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """List stored keys."""
        return list(self._data)


class FallbackStore(KeyValueStore):
    """Wraps a store and degrades to memory when it becomes unavailable.

    Once degraded the wrapper stays in memory for the rest of the process
    lifetime; telemetry keeps flowing without cross-session continuity.
    """

    def __init__(self, primary: KeyValueStore, name: str = "durable"):
        self.primary = primary
        self.name = name
        self._memory = MemoryStore()
        self._degraded = False
        self.logger = logger.bind(service="storage", store=name)

    @property
    def backend(self) -> str:  # type: ignore[override]
        return self._memory.backend if self._degraded else self.primary.backend

    @property
    def degraded(self) -> bool:
        """True once the primary store has failed."""
        return self._degraded

    def _degrade(self, error: StorageUnavailableError) -> None:
        self._degraded = True
        self.logger.warning(
            "Storage unavailable, continuing in memory only",
            backend=self.primary.backend,
            error=error.message,
        )

    def get(self, key: str) -> Any | None:
        if not self._degraded:
            try:
                return self.primary.get(key)
            except StorageUnavailableError as e:
                self._degrade(e)
        return self._memory.get(key)

    def set(self, key: str, value: Any) -> None:
        if not self._degraded:
            try:
                self.primary.set(key, value)
                return
            except StorageUnavailableError as e:
                self._degrade(e)
        self._memory.set(key, value)

    def delete(self, key: str) -> None:
        if not self._degraded:
            try:
                self.primary.delete(key)
                return
            except StorageUnavailableError as e:
                self._degrade(e)
        self._memory.delete(key)


def resilient(store: KeyValueStore, name: str = "durable") -> KeyValueStore:
    """Wrap a store in a FallbackStore unless it cannot fail anyway."""
    if isinstance(store, (FallbackStore, MemoryStore)):
        return store
    return FallbackStore(store, name=name)
