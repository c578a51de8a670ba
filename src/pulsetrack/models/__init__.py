"""Pydantic models for pulsetrack."""

from pulsetrack.models.assignment import VariantAssignment, assignment_key
from pulsetrack.models.base import (
    BaseModel,
    FrozenModel,
    generate_ulid,
    generate_uuid,
    now_ms,
)
from pulsetrack.models.event import Event
from pulsetrack.models.identity import VisitorIdentity
from pulsetrack.models.metric import Metric, MetricName, MetricRating, rate_metric
from pulsetrack.models.payloads import BUILTIN_PAYLOADS, ConversionItem, EventPayload
from pulsetrack.models.touchpoint import LocationSignals, Touchpoint

__all__ = [
    "BUILTIN_PAYLOADS",
    "BaseModel",
    "ConversionItem",
    "Event",
    "EventPayload",
    "FrozenModel",
    "LocationSignals",
    "Metric",
    "MetricName",
    "MetricRating",
    "Touchpoint",
    "VariantAssignment",
    "VisitorIdentity",
    "assignment_key",
    "generate_ulid",
    "generate_uuid",
    "now_ms",
    "rate_metric",
]
