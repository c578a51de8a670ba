"""Visitor identity model."""

from pulsetrack.models.base import FrozenModel


class VisitorIdentity(FrozenModel):
    """Long-lived anonymous visitor id plus the current session id.

    The visitor id is created once and never changes; the session id is
    regenerated whenever the session-scoped store is empty.
    """

    visitor_id: str
    session_id: str
