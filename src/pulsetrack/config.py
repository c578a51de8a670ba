"""Pipeline configuration."""

import json
import os
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

logger = structlog.get_logger()


class ProviderType(str, Enum):
    """Built-in analytics provider adapters."""

    DATA_LAYER = "data_layer"  # Tag-manager data layer push
    GTAG = "gtag"
    PIXEL = "pixel"
    SESSION_REPLAY = "session_replay"
    CALLABLE = "callable"


class StorageBackend(str, Enum):
    """Durable storage backends selectable from configuration."""

    MEMORY = "memory"
    FILE = "file"
    DYNAMODB = "dynamodb"


class ProviderConfig(BaseModel):
    """Configuration for one fan-out provider."""

    name: str = Field(..., description="Provider identifier")
    type: ProviderType = Field(default=ProviderType.CALLABLE)
    enabled: bool = Field(default=True)
    events: list[str] | None = Field(
        default=None,
        description="Event names forwarded to this provider; None forwards everything",
    )
    options: dict[str, Any] = Field(default_factory=dict)

    def accepts(self, event_name: str) -> bool:
        """Whether this provider should receive the given event."""
        if not self.enabled:
            return False
        return self.events is None or event_name in self.events


class PipelineConfig(BaseModel):
    """Recognized pipeline options."""

    batch_size: int = Field(default=10, ge=1, description="Queue length that triggers a flush")
    flush_interval_ms: int = Field(default=5000, ge=1)
    attribution_window_days: int = Field(default=30, ge=1)
    max_touchpoints: int = Field(default=10, ge=1)
    collector_base_url: str = Field(default="http://localhost:3000", description="Joined with relative endpoints")
    collector_endpoint: str = Field(default="/api/analytics/track")
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    storage_namespace: str = Field(default="pulsetrack")
    storage_backend: StorageBackend = Field(default=StorageBackend.MEMORY)
    storage_path: str = Field(default="data/pulsetrack", description="Root directory for the file backend")
    table_name: str | None = Field(default=None, description="DynamoDB table for the dynamodb backend")
    providers: list[ProviderConfig] = Field(default_factory=list)

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000

    @classmethod
    def from_env(cls, **overrides: Any) -> "PipelineConfig":
        """Build a config from PULSETRACK_* environment variables.

        Keyword overrides win over the environment. ``PULSETRACK_PROVIDERS``
        holds a JSON list of provider configs. Environment values that do
        not parse or validate are logged and replaced by their defaults;
        invalid overrides still raise.
        """
        env_map = {
            "batch_size": "PULSETRACK_BATCH_SIZE",
            "flush_interval_ms": "PULSETRACK_FLUSH_INTERVAL_MS",
            "attribution_window_days": "PULSETRACK_ATTRIBUTION_WINDOW_DAYS",
            "max_touchpoints": "PULSETRACK_MAX_TOUCHPOINTS",
            "collector_base_url": "PULSETRACK_COLLECTOR_BASE_URL",
            "collector_endpoint": "PULSETRACK_COLLECTOR_ENDPOINT",
            "request_timeout_seconds": "PULSETRACK_REQUEST_TIMEOUT_SECONDS",
            "storage_namespace": "PULSETRACK_STORAGE_NAMESPACE",
            "storage_backend": "PULSETRACK_STORAGE_BACKEND",
            "storage_path": "PULSETRACK_STORAGE_PATH",
            "table_name": "PULSETRACK_TABLE_NAME",
        }
        data: dict[str, Any] = {}
        for field_name, env_var in env_map.items():
            value = os.environ.get(env_var)
            if value:
                data[field_name] = value

        providers = os.environ.get("PULSETRACK_PROVIDERS")
        if providers:
            try:
                data["providers"] = json.loads(providers)
            except json.JSONDecodeError as e:
                logger.warning("Ignoring unparseable PULSETRACK_PROVIDERS", error=str(e))

        try:
            return cls.model_validate({**data, **overrides})
        except PydanticValidationError as e:
            invalid = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
            if not invalid & data.keys():
                raise
            logger.warning("Ignoring invalid environment settings", fields=sorted(invalid & data.keys()))
            data = {key: value for key, value in data.items() if key not in invalid}
            return cls.model_validate({**data, **overrides})
