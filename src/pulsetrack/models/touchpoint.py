"""Touchpoint and location signal models for conversion attribution."""

from pydantic import Field

from pulsetrack.models.base import BaseModel, FrozenModel, now_ms


class Touchpoint(FrozenModel):
    """A recorded marketing-channel interaction for a visit."""

    source: str
    medium: str
    campaign: str
    content: str | None = None
    term: str | None = None
    timestamp: int = Field(default_factory=now_ms, description="Epoch milliseconds")
    page: str = ""
    referrer: str = ""


class LocationSignals(BaseModel):
    """Entry-point signals for a top-level navigation."""

    url: str
    referrer: str = ""
    title: str = ""
