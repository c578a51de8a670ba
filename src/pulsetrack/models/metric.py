"""Web performance metric models and rating thresholds."""

from enum import Enum

from pydantic import Field

from pulsetrack.models.base import FrozenModel, generate_ulid


class MetricName(str, Enum):
    """Supported web performance signals."""

    CLS = "CLS"  # Cumulative layout shift
    FID = "FID"  # First input delay
    FCP = "FCP"  # First contentful paint
    LCP = "LCP"  # Largest contentful paint
    TTFB = "TTFB"  # Time to first byte
    INP = "INP"  # Interaction to next paint


class MetricRating(str, Enum):
    """Classification of a metric value."""

    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs-improvement"
    POOR = "poor"


# (good, poor) upper bounds, inclusive
THRESHOLDS: dict[MetricName, tuple[float, float]] = {
    MetricName.CLS: (0.1, 0.25),
    MetricName.FID: (100, 300),
    MetricName.FCP: (1800, 3000),
    MetricName.LCP: (2500, 4000),
    MetricName.TTFB: (800, 1800),
    MetricName.INP: (200, 500),
}


def rate_metric(name: MetricName | str, value: float) -> MetricRating:
    """Classify a raw metric value against the fixed thresholds."""
    good, poor = THRESHOLDS[MetricName(name)]
    if value <= good:
        return MetricRating.GOOD
    if value <= poor:
        return MetricRating.NEEDS_IMPROVEMENT
    return MetricRating.POOR


class Metric(FrozenModel):
    """A classified performance measurement."""

    name: MetricName
    value: float
    rating: MetricRating
    delta: float = 0.0
    id: str = Field(default_factory=generate_ulid)
