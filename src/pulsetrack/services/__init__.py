"""Pipeline services."""

from pulsetrack.services.attribution import AttributionTracker, build_touchpoint, classify_referrer
from pulsetrack.services.conversions import ConversionTracker
from pulsetrack.services.experiments import AssignmentEngine, bucket
from pulsetrack.services.identity import IdentityStore
from pulsetrack.services.performance import (
    MetricSource,
    PerformanceBudget,
    PerformanceMonitor,
    PerformanceObserver,
)
from pulsetrack.services.pipeline import (
    TelemetryPipeline,
    configure_pipeline,
    get_pipeline,
    reset_pipeline,
)
from pulsetrack.services.schema_registry import FieldSpec, FieldType, SchemaRegistry, default_registry

__all__ = [
    "AssignmentEngine",
    "AttributionTracker",
    "ConversionTracker",
    "FieldSpec",
    "FieldType",
    "IdentityStore",
    "MetricSource",
    "PerformanceBudget",
    "PerformanceMonitor",
    "PerformanceObserver",
    "SchemaRegistry",
    "TelemetryPipeline",
    "bucket",
    "build_touchpoint",
    "classify_referrer",
    "configure_pipeline",
    "default_registry",
    "get_pipeline",
    "reset_pipeline",
]
