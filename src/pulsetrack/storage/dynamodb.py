"""DynamoDB storage backend.

Single-table layout:
    PK: PULSETRACK#{namespace}
    SK: {key}

Values are stored as JSON strings so floats never need Decimal
conversion.
"""

import json
import os
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from pulsetrack.storage.base import KeyValueStore
from pulsetrack.utils.exceptions import StorageUnavailableError

logger = structlog.get_logger()


class DynamoDBStore(KeyValueStore):
    """Key-value store backed by a DynamoDB table with PK/SK keys."""

    backend = "dynamodb"

    def __init__(
        self,
        table_name: str | None = None,
        namespace: str = "pulsetrack",
        region_name: str | None = None,
    ):
        """Initialize the store.

        Args:
            table_name: DynamoDB table name. Defaults to PULSETRACK_TABLE_NAME env var.
            namespace: Partition isolating this pipeline's keys.
            region_name: Optional AWS region override.
        """
        self.table_name = table_name or os.environ.get("PULSETRACK_TABLE_NAME", "pulsetrack-dev")
        self.namespace = namespace
        self.region_name = region_name
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb", region_name=self.region_name)
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def _build_key(self, key: str) -> dict[str, str]:
        return {"PK": f"PULSETRACK#{self.namespace}", "SK": key}

    def get(self, key: str) -> Any | None:
        try:
            response = self.table.get_item(Key=self._build_key(key))
        except (ClientError, BotoCoreError) as e:
            logger.error("DynamoDB get_item failed", error=str(e), key=key)
            raise StorageUnavailableError(self.backend, original_error=str(e)) from e

        item = response.get("Item")
        if not item:
            return None
        try:
            return json.loads(item["value"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding corrupt storage item", key=key, error=str(e))
            return None

    def set(self, key: str, value: Any) -> None:
        db_item = {**self._build_key(key), "value": json.dumps(value)}
        try:
            self.table.put_item(Item=db_item)
        except (ClientError, BotoCoreError) as e:
            logger.error("DynamoDB put_item failed", error=str(e), key=key)
            raise StorageUnavailableError(self.backend, original_error=str(e)) from e

    def delete(self, key: str) -> None:
        try:
            self.table.delete_item(Key=self._build_key(key))
        except (ClientError, BotoCoreError) as e:
            logger.error("DynamoDB delete_item failed", error=str(e), key=key)
            raise StorageUnavailableError(self.backend, original_error=str(e)) from e
