"""Provider fan-out.

Forwards events synchronously to every configured analytics provider.
Each provider is isolated: one that raises is logged and skipped, and one
that keeps raising is short-circuited until it has had time to recover.
Nothing here ever affects the delivery queue.
"""

from typing import Any

import structlog

from pulsetrack.integrations.base_provider import BaseProvider
from pulsetrack.integrations.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from pulsetrack.models.event import Event
from pulsetrack.utils.exceptions import ProviderError

logger = structlog.get_logger()


class ProviderFanout:
    """Registry of providers plus best-effort per-provider delivery."""

    def __init__(self, breaker_config: CircuitBreakerConfig | None = None):
        self.breaker_config = breaker_config or CircuitBreakerConfig()
        self._providers: dict[str, BaseProvider] = {}
        self._circuits: dict[str, CircuitBreaker] = {}
        self.errors: list[ProviderError] = []
        self.logger = logger.bind(service="provider_fanout")

    def register(self, provider: BaseProvider) -> None:
        """Register (or replace) a provider under its id."""
        provider_id = provider.provider_id
        self._providers[provider_id] = provider
        self._circuits[provider_id] = CircuitBreaker(circuit_id=provider_id, config=self.breaker_config)
        self.logger.info("Provider registered", provider=provider_id)

    def unregister(self, provider_id: str) -> None:
        self._providers.pop(provider_id, None)
        self._circuits.pop(provider_id, None)

    @property
    def provider_ids(self) -> list[str]:
        return list(self._providers)

    def get_circuit(self, provider_id: str) -> CircuitBreaker | None:
        return self._circuits.get(provider_id)

    def report(self, provider_name: str, event_name: str, properties: dict[str, Any]) -> bool:
        """Forward one event to one provider.

        Returns:
            True if the provider accepted the event.
        """
        provider = self._providers.get(provider_name)
        if provider is None:
            self.logger.debug("Unknown provider", provider=provider_name)
            return False

        circuit = self._circuits[provider_name]
        if not circuit.should_allow_request():
            self.logger.debug("Provider circuit open, skipping", provider=provider_name, event_name=event_name)
            return False

        try:
            provider.report(event_name, dict(properties))
        except Exception as e:
            circuit.record_failure()
            error = ProviderError(provider_name, event_name, original_error=str(e))
            self.errors.append(error)
            del self.errors[:-50]
            self.logger.warning(
                "Provider failed to report event",
                provider=provider_name,
                event_name=event_name,
                error=str(e),
            )
            return False

        circuit.record_success()
        return True

    def broadcast(self, event: Event) -> list[str]:
        """Forward an event to every provider configured to receive it.

        Returns:
            Ids of the providers that accepted the event.
        """
        delivered = []
        for provider_id, provider in list(self._providers.items()):
            if not provider.accepts(event.name):
                continue
            if self.report(provider_id, event.name, provider_properties(event)):
                delivered.append(provider_id)
        return delivered


def provider_properties(event: Event) -> dict[str, Any]:
    """Event properties enriched with page context for third-party SDKs."""
    properties = dict(event.properties)
    if event.page_url:
        properties.setdefault("page_location", event.page_url)
    if event.page_title:
        properties.setdefault("page_title", event.page_title)
    return properties
