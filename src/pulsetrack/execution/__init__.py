"""Event delivery infrastructure.

This module provides the components for reliable delivery:
- CollectorClient: HTTP transport to the remote collector
- DeliveryWorker: Durable queue with batched, retried flushes
"""

from pulsetrack.execution.collector import CollectorClient
from pulsetrack.execution.delivery import (
    QUEUE_KEY,
    DeliveryOutcome,
    DeliveryStats,
    DeliveryWorker,
    FlushReason,
    WorkerState,
)

__all__ = [
    "CollectorClient",
    "DeliveryOutcome",
    "DeliveryStats",
    "DeliveryWorker",
    "FlushReason",
    "QUEUE_KEY",
    "WorkerState",
]
