"""Utility functions and helpers."""

from pulsetrack.utils.exceptions import (
    DeliveryError,
    ProviderError,
    PulseTrackError,
    StorageUnavailableError,
    UnsupportedMetricError,
    ValidationError,
)

__all__ = [
    "DeliveryError",
    "ProviderError",
    "PulseTrackError",
    "StorageUnavailableError",
    "UnsupportedMetricError",
    "ValidationError",
]
