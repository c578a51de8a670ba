"""Visitor and session identity.

The visitor id is durable and never changes once written. The session id
lives in a session-scoped store supplied by the host, so it is
regenerated whenever that store starts out empty.
"""

import structlog

from pulsetrack.models.base import generate_uuid
from pulsetrack.models.identity import VisitorIdentity
from pulsetrack.storage.base import KeyValueStore, MemoryStore, resilient

logger = structlog.get_logger()

VISITOR_ID_KEY = "identity.visitor_id"
SESSION_ID_KEY = "identity.session_id"


class IdentityStore:
    """Load-or-create holder for the visitor and session identifiers."""

    def __init__(
        self,
        durable_store: KeyValueStore,
        session_store: KeyValueStore | None = None,
    ):
        self.durable_store = resilient(durable_store, "identity")
        self.session_store = resilient(session_store or MemoryStore(), "session")
        self._identity: VisitorIdentity | None = None
        self.logger = logger.bind(service="identity_store")

    def load_or_create(self) -> VisitorIdentity:
        """Read both identifiers from storage, creating any that are missing.

        Called once at pipeline construction; the result is held by value.
        """
        if self._identity is not None:
            return self._identity

        visitor_id = self._load_or_create(self.durable_store, VISITOR_ID_KEY)
        session_id = self._load_or_create(self.session_store, SESSION_ID_KEY)

        self._identity = VisitorIdentity(visitor_id=visitor_id, session_id=session_id)
        return self._identity

    def _load_or_create(self, store: KeyValueStore, key: str) -> str:
        value = store.get(key)
        if isinstance(value, str) and value:
            return value

        value = generate_uuid()
        store.set(key, value)
        self.logger.info("Created identifier", key=key)
        return value

    @property
    def identity(self) -> VisitorIdentity:
        return self.load_or_create()

    def get_visitor_id(self) -> str:
        """Get the stable visitor id."""
        return self.identity.visitor_id

    def get_session_id(self) -> str:
        """Get the current session id."""
        return self.identity.session_id
