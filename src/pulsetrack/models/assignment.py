"""Experiment variant assignment model."""

from pydantic import Field

from pulsetrack.models.base import FrozenModel, now_ms


class VariantAssignment(FrozenModel):
    """A persisted bucketing decision for one (test, visitor) pair."""

    test_name: str
    visitor_id: str
    variant: str
    assigned_at: int = Field(default_factory=now_ms, description="Epoch milliseconds")

    @property
    def cache_key(self) -> str:
        """Lookup key used by the assignment cache."""
        return assignment_key(self.test_name, self.visitor_id)


def assignment_key(test_name: str, visitor_id: str) -> str:
    """Build the assignment lookup key for a test and visitor."""
    return f"{test_name}:{visitor_id}"
