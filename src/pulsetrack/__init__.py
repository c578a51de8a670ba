"""pulsetrack: client-side analytics, attribution and experimentation pipeline."""

from pulsetrack.config import PipelineConfig, ProviderConfig, ProviderType, StorageBackend
from pulsetrack.services.conversions import ConversionTracker
from pulsetrack.services.pipeline import (
    TelemetryPipeline,
    configure_pipeline,
    get_pipeline,
    reset_pipeline,
)

__version__ = "0.1.0"

__all__ = [
    "ConversionTracker",
    "PipelineConfig",
    "ProviderConfig",
    "ProviderType",
    "StorageBackend",
    "TelemetryPipeline",
    "configure_pipeline",
    "get_pipeline",
    "reset_pipeline",
]
