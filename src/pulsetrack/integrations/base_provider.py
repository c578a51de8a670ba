"""Base class for analytics providers.

Providers are external analytics collaborators (tag managers, pixels,
session-replay tools). The pipeline only ever calls ``report`` and never
depends on a return value.
"""

from abc import ABC, abstractmethod
from typing import Any

from pulsetrack.config import ProviderConfig


class BaseProvider(ABC):
    """Abstract base class for fan-out providers.

    Example usage:
        class ConsoleProvider(BaseProvider):
            def report(self, event_name, properties):
                print(event_name, properties)

        fanout.register(ConsoleProvider(ProviderConfig(name="console")))
    """

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def provider_id(self) -> str:
        return self.config.name

    def accepts(self, event_name: str) -> bool:
        """Whether this provider is configured to receive the event."""
        return self.config.accepts(event_name)

    @abstractmethod
    def report(self, event_name: str, properties: dict[str, Any]) -> None:
        """Forward one event. Must not block."""
