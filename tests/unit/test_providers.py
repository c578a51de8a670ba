"""Tests for provider adapters, fan-out and circuit breaking."""

import pytest

from pulsetrack.config import ProviderConfig, ProviderType
from pulsetrack.integrations.base_provider import BaseProvider
from pulsetrack.integrations.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from pulsetrack.integrations.fanout import ProviderFanout, provider_properties
from pulsetrack.integrations.providers import (
    CallableProvider,
    DataLayerProvider,
    GtagProvider,
    PixelProvider,
    SessionReplayProvider,
    build_provider,
)
from pulsetrack.models.event import Event


class RecordingProvider(BaseProvider):
    def __init__(self, name, events=None, fail=False):
        super().__init__(ProviderConfig(name=name, events=events))
        self.fail = fail
        self.reports = []

    def report(self, event_name, properties):
        if self.fail:
            raise RuntimeError(f"{self.provider_id} is down")
        self.reports.append((event_name, properties))


class FakeTime:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def purchase_event():
    return Event(
        name="purchase",
        properties={
            "transaction_id": "t-1",
            "value": 80.0,
            "currency": "USD",
            "items": [
                {"item_id": "cut", "item_name": "Cut", "item_category": "hair", "quantity": 2, "price": 40.0},
            ],
        },
        visitor_id="v",
        session_id="s",
        page_url="https://salon.test/checkout",
        page_title="Checkout",
    )


class TestAdapters:
    """Tests for built-in provider adapters."""

    def test_data_layer_push(self):
        layer = []
        provider = DataLayerProvider(ProviderConfig(name="gtm", type=ProviderType.DATA_LAYER), layer)

        provider.report("purchase", {"value": 10})

        assert layer == [{"event": "purchase", "value": 10}]

    def test_gtag(self):
        calls = []
        provider = GtagProvider(ProviderConfig(name="ga"), lambda *args: calls.append(args))

        provider.report("page_view", {"page": "/"})

        assert calls == [("event", "page_view", {"page": "/"})]

    def test_pixel_standard_event(self, purchase_event):
        calls = []
        provider = PixelProvider(ProviderConfig(name="fb"), lambda *args: calls.append(args))

        provider.report("purchase", purchase_event.properties)

        assert calls == [
            (
                "track",
                "Purchase",
                {"value": 80.0, "currency": "USD", "content_type": "product", "content_ids": ["cut"], "num_items": 2},
            )
        ]

    def test_pixel_lead_mapping(self):
        calls = []
        provider = PixelProvider(ProviderConfig(name="fb"), lambda *args: calls.append(args))

        provider.report("contact_form_submit", {"form_name": "Consult", "inquiry_type": "bridal", "form_id": "f"})

        assert calls == [("track", "Lead", {"content_name": "Consult", "content_category": "bridal"})]

    def test_pixel_custom_event(self):
        calls = []
        provider = PixelProvider(ProviderConfig(name="fb"), lambda *args: calls.append(args))

        provider.report("phone_call_click", {"source": "header"})

        assert calls == [("trackCustom", "phone_call_click", {"source": "header"})]

    def test_pixel_event_map_override(self):
        calls = []
        config = ProviderConfig(name="fb", options={"event_map": {"booking_completed": "Schedule"}})
        provider = PixelProvider(config, lambda *args: calls.append(args))

        provider.report("booking_completed", {"value": 60})

        assert calls[0][:2] == ("track", "Schedule")

    def test_session_replay_annotation(self):
        calls = []
        provider = SessionReplayProvider(ProviderConfig(name="replay"), lambda *args: calls.append(args))

        provider.report("purchase", {"value": 1})

        assert calls == [("event", "purchase")]

    def test_build_provider(self):
        provider = build_provider(ProviderConfig(name="x", type="gtag"), lambda *args: None)
        fallback = build_provider(ProviderConfig(name="y"), lambda *args: None)

        assert isinstance(provider, GtagProvider)
        assert isinstance(fallback, CallableProvider)


class TestCircuitBreaker:
    """Tests for the per-provider circuit breaker."""

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker("p", CircuitBreakerConfig(failure_threshold=2), clock=FakeTime())

        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert breaker.should_allow_request() is False
        assert breaker.metrics.rejected_calls == 1

    def test_half_open_after_timeout_then_closes(self):
        clock = FakeTime()
        breaker = CircuitBreaker("p", CircuitBreakerConfig(failure_threshold=1, recovery_timeout=10), clock=clock)
        breaker.record_failure()

        clock.now = 10
        assert breaker.should_allow_request() is True
        assert breaker.state == CircuitState.HALF_OPEN

        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED

    def test_half_open_failure_reopens(self):
        clock = FakeTime()
        breaker = CircuitBreaker("p", CircuitBreakerConfig(failure_threshold=1, recovery_timeout=10), clock=clock)
        breaker.record_failure()
        clock.now = 11
        breaker.should_allow_request()

        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN


class TestProviderFanout:
    """Tests for ProviderFanout."""

    def test_broadcast_respects_allowlists(self, purchase_event):
        fanout = ProviderFanout()
        everything = RecordingProvider("all")
        pages_only = RecordingProvider("pages", events=["page_view"])
        fanout.register(everything)
        fanout.register(pages_only)

        delivered = fanout.broadcast(purchase_event)

        assert delivered == ["all"]
        assert pages_only.reports == []

    def test_page_context_added(self, purchase_event):
        properties = provider_properties(purchase_event)

        assert properties["page_location"] == "https://salon.test/checkout"
        assert properties["page_title"] == "Checkout"
        assert "page_location" not in purchase_event.properties

    def test_failing_provider_is_isolated(self, purchase_event):
        fanout = ProviderFanout()
        broken = RecordingProvider("broken", fail=True)
        healthy = RecordingProvider("healthy")
        fanout.register(broken)
        fanout.register(healthy)

        delivered = fanout.broadcast(purchase_event)

        assert delivered == ["healthy"]
        assert len(healthy.reports) == 1
        assert fanout.errors[0].error_code == "PROVIDER_FAILED"

    def test_repeated_failures_open_circuit(self):
        fanout = ProviderFanout(CircuitBreakerConfig(failure_threshold=2, recovery_timeout=60))
        broken = RecordingProvider("broken", fail=True)
        fanout.register(broken)

        results = [fanout.report("broken", "page_view", {}) for _ in range(4)]

        assert results == [False, False, False, False]
        assert fanout.get_circuit("broken").state == CircuitState.OPEN
        assert fanout.get_circuit("broken").metrics.failed_calls == 2

    def test_unknown_provider(self):
        assert ProviderFanout().report("ghost", "page_view", {}) is False

    def test_provider_cannot_mutate_event(self, purchase_event):
        class Mutating(BaseProvider):
            def report(self, event_name, properties):
                properties["value"] = 0

        fanout = ProviderFanout()
        fanout.register(Mutating(ProviderConfig(name="mutating")))

        fanout.broadcast(purchase_event)

        assert purchase_event.properties["value"] == 80.0

    def test_unregister(self):
        fanout = ProviderFanout()
        fanout.register(RecordingProvider("a"))

        fanout.unregister("a")

        assert fanout.provider_ids == []
