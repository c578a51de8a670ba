"""Enriched telemetry event model."""

from typing import Any

from pydantic import Field

from pulsetrack.models.base import FrozenModel, generate_ulid, now_ms
from pulsetrack.models.touchpoint import Touchpoint


class Event(FrozenModel):
    """An enriched, validated event ready for fan-out and delivery.

    Immutable once constructed. ``event_id`` lets the collector drop
    duplicates produced by at-least-once redelivery.
    """

    event_id: str = Field(default_factory=generate_ulid)
    name: str
    properties: dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=now_ms, description="Epoch milliseconds")
    visitor_id: str
    session_id: str
    page_url: str = ""
    page_title: str = ""
    attribution: list[Touchpoint] | None = None
