"""Analytics provider integrations.

This module provides the fan-out boundary to external analytics tools:
- BaseProvider: Contract every provider adapter implements
- ProviderFanout: Isolated, best-effort delivery to each provider
- CircuitBreaker: Skips providers that keep failing
"""

from pulsetrack.integrations.base_provider import BaseProvider
from pulsetrack.integrations.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from pulsetrack.integrations.fanout import ProviderFanout, provider_properties
from pulsetrack.integrations.providers import (
    PIXEL_STANDARD_EVENTS,
    CallableProvider,
    DataLayerProvider,
    GtagProvider,
    PixelProvider,
    SessionReplayProvider,
    build_provider,
)

__all__ = [
    "BaseProvider",
    "CallableProvider",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "DataLayerProvider",
    "GtagProvider",
    "PIXEL_STANDARD_EVENTS",
    "PixelProvider",
    "ProviderFanout",
    "SessionReplayProvider",
    "build_provider",
    "provider_properties",
]
