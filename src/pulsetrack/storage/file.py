"""JSON file storage backend.

One JSON document per key inside a namespace directory. Writes go to a
temporary file first and are moved into place so a crash never leaves a
half-written document behind.
"""

import json
import os
import re
from pathlib import Path
from typing import Any

import structlog

from pulsetrack.storage.base import KeyValueStore
from pulsetrack.utils.exceptions import StorageUnavailableError

logger = structlog.get_logger()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileStore(KeyValueStore):
    """Key-value store backed by a directory of JSON files."""

    backend = "file"

    def __init__(self, storage_path: str | os.PathLike = "data/pulsetrack", namespace: str = "pulsetrack"):
        """Initialize the store.

        Args:
            storage_path: Root directory for stored documents.
            namespace: Subdirectory isolating this pipeline's keys.
        """
        self.root = Path(storage_path) / namespace

    def _path(self, key: str) -> Path:
        return self.root / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            if not path.exists():
                return None
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except ValueError as e:
            # Invalid JSON or invalid UTF-8
            logger.warning("Discarding corrupt storage document", key=key, path=str(path), error=str(e))
            return None
        except OSError as e:
            raise StorageUnavailableError(self.backend, original_error=str(e)) from e

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError) as e:
            raise StorageUnavailableError(self.backend, original_error=str(e)) from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailableError(self.backend, original_error=str(e)) from e
