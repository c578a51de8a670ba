"""Telemetry pipeline.

Single entry point for the host application. Wires identity, schema
validation, attribution, experiments, performance observation, provider
fan-out and the delivery worker around one durable store.

Every public method is safe to call from application code: failures are
logged and a neutral value is returned, so analytics never breaks the
caller.
"""

from typing import Any, Callable

import structlog

from pulsetrack.config import PipelineConfig
from pulsetrack.execution.collector import CollectorClient
from pulsetrack.execution.delivery import DeliveryOutcome, DeliveryWorker, FlushReason
from pulsetrack.integrations.base_provider import BaseProvider
from pulsetrack.integrations.fanout import ProviderFanout
from pulsetrack.integrations.providers import build_provider
from pulsetrack.models.assignment import assignment_key
from pulsetrack.models.base import now_ms
from pulsetrack.models.event import Event
from pulsetrack.models.identity import VisitorIdentity
from pulsetrack.models.metric import Metric, MetricName
from pulsetrack.models.payloads import EventPayload, PageViewPayload
from pulsetrack.models.touchpoint import LocationSignals, Touchpoint
from pulsetrack.services.attribution import AttributionTracker
from pulsetrack.services.experiments import AssignmentEngine, bucket
from pulsetrack.services.identity import IdentityStore
from pulsetrack.services.performance import MetricSource, PerformanceObserver
from pulsetrack.services.schema_registry import SchemaRegistry, default_registry
from pulsetrack.storage.base import KeyValueStore, resilient
from pulsetrack.storage.factory import create_store
from pulsetrack.utils.exceptions import ValidationError

logger = structlog.get_logger()

MAX_DIAGNOSTICS = 100

DiagnosticCallback = Callable[[ValidationError], Any]


class TelemetryPipeline:
    """Validates, enriches, fans out and delivers analytics events."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        durable_store: KeyValueStore | None = None,
        session_store: KeyValueStore | None = None,
        registry: SchemaRegistry | None = None,
        fanout: ProviderFanout | None = None,
        client: CollectorClient | None = None,
        provider_handles: dict[str, Any] | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the pipeline.

        Args:
            config: Pipeline options. Defaults to ``PipelineConfig()``.
            durable_store: Store that survives restarts. Defaults to the
                backend selected by ``config.storage_backend``.
            session_store: Store scoped to the browsing session.
            registry: Event schemas. Defaults to the built-in events.
            fanout: Provider fan-out. Defaults to an empty one.
            client: Collector client. Built from the config when omitted.
            provider_handles: SDK handles keyed by provider name, used to
                build the providers listed in ``config.providers``.
            clock: Returns the current time in epoch milliseconds.
        """
        self.config = config or PipelineConfig()
        self.clock = clock
        self.store = resilient(durable_store if durable_store is not None else create_store(self.config), "durable")
        self.registry = registry or default_registry()
        self.logger = logger.bind(service="telemetry_pipeline")

        self.identity_store = IdentityStore(self.store, session_store)
        self.identity: VisitorIdentity = self.identity_store.load_or_create()

        self.attribution = AttributionTracker(
            self.store,
            window_days=self.config.attribution_window_days,
            max_touchpoints=self.config.max_touchpoints,
            clock=clock,
        )
        self.experiments = AssignmentEngine(
            self.store,
            visitor_id=self.identity.visitor_id,
            emit=self.track,
            clock=clock,
        )
        self.performance = PerformanceObserver(track=self.track)

        self.fanout = fanout or ProviderFanout()
        self._configure_providers(provider_handles or {})

        self.worker = DeliveryWorker(
            self.store,
            client
            or CollectorClient(
                self.config.collector_endpoint,
                base_url=self.config.collector_base_url,
                timeout=self.config.request_timeout_seconds,
            ),
            batch_size=self.config.batch_size,
            flush_interval=self.config.flush_interval_seconds,
        )

        self.page = LocationSignals(url="")
        self.diagnostics: list[ValidationError] = []
        self._diagnostic_callbacks: list[DiagnosticCallback] = []

    def _configure_providers(self, handles: dict[str, Any]) -> None:
        for provider_config in self.config.providers:
            handle = handles.get(provider_config.name)
            if handle is None:
                self.logger.warning("No handle supplied for provider", provider=provider_config.name)
                continue
            self.fanout.register(build_provider(provider_config, handle))

    def register_provider(self, provider: BaseProvider) -> None:
        """Add a provider to the fan-out."""
        self.fanout.register(provider)

    # Events

    def track(self, name: str | EventPayload, properties: dict[str, Any] | None = None) -> Event | None:
        """Validate, enrich and dispatch an event.

        Args:
            name: Event name, or a typed payload carrying its own name.
            properties: Property bag, ignored when ``name`` is a payload.

        Returns:
            The enriched event, or None if it was dropped.
        """
        if isinstance(name, EventPayload):
            payload: EventPayload | dict[str, Any] | None = name
            name = name.event_name
        else:
            payload = properties

        try:
            result = self.registry.validate(name, payload)
            if not result.ok:
                self._report_invalid(result.error)
                return None

            attribution = None
            if result.schema is not None and result.schema.include_attribution:
                attribution = self.attribution.get_touchpoints()

            event = Event(
                name=name,
                properties=result.properties,
                timestamp=self.clock(),
                visitor_id=self.identity.visitor_id,
                session_id=self.identity.session_id,
                page_url=self.page.url,
                page_title=self.page.title,
                attribution=attribution,
            )

            self.fanout.broadcast(event)
            self.worker.enqueue(event)
            self.logger.debug("Event tracked", event_name=name, event_id=event.event_id)
            return event
        except Exception as e:
            self.logger.exception("Failed to track event", event_name=name, error=str(e))
            return None

    def _report_invalid(self, error: ValidationError | None) -> None:
        if error is None:
            return

        self.logger.warning(
            "Dropping invalid event",
            event_name=error.event_name,
            error_code=error.error_code,
            errors=error.errors,
        )
        self.diagnostics.append(error)
        del self.diagnostics[:-MAX_DIAGNOSTICS]

        for callback in list(self._diagnostic_callbacks):
            try:
                callback(error)
            except Exception as e:
                self.logger.warning("Diagnostic callback failed", error=str(e))

    def on_diagnostic(self, callback: DiagnosticCallback) -> Callable[[], None]:
        """Register a callback for dropped events.

        Returns:
            A function that removes the callback again.
        """
        self._diagnostic_callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._diagnostic_callbacks:
                self._diagnostic_callbacks.remove(callback)

        return unsubscribe

    # Navigation and attribution

    def capture_entry_touchpoint(self, signals: LocationSignals | dict) -> Touchpoint | None:
        """Record the touchpoint for a top-level navigation."""
        try:
            return self.attribution.capture_entry_touchpoint(signals)
        except Exception as e:
            self.logger.exception("Failed to capture touchpoint", error=str(e))
            return None

    def navigate(
        self,
        url: str,
        title: str = "",
        referrer: str = "",
        track_page_view: bool = True,
    ) -> Touchpoint | None:
        """Update page context for a navigation, capture its touchpoint and
        optionally track a ``page_view``.

        Returns:
            The recorded touchpoint, or None for internal navigation.
        """
        try:
            self.page = LocationSignals(url=url, referrer=referrer, title=title)
        except Exception as e:
            self.logger.exception("Invalid navigation signals", url=url, error=str(e))
            return None

        touchpoint = self.capture_entry_touchpoint(self.page)
        if track_page_view:
            self.track(PageViewPayload(page=url, title=title or None, referrer=referrer or None))
        return touchpoint

    def get_touchpoints(self, window_days: int | None = None) -> list[Touchpoint]:
        """Touchpoints inside the attribution window, oldest first."""
        try:
            return self.attribution.get_touchpoints(window_days)
        except Exception as e:
            self.logger.exception("Failed to read touchpoints", error=str(e))
            return []

    # Experiments

    def get_variant(self, test_name: str, variants: list[str], weights: list[float] | None = None) -> str:
        """The visitor's variant for a test, assigned on first call."""
        try:
            return self.experiments.get_variant(test_name, variants, weights)
        except Exception as e:
            self.logger.exception("Variant assignment failed, bucketing without cache", test_name=test_name, error=str(e))
            return bucket(assignment_key(test_name, self.identity.visitor_id), variants, weights)

    def record_conversion(self, test_name: str, value: float | None = None) -> bool:
        """Track an ``ab_test_conversion`` for the visitor's assigned variant."""
        try:
            return self.experiments.record_conversion(test_name, value)
        except Exception as e:
            self.logger.exception("Failed to record conversion", test_name=test_name, error=str(e))
            return False

    # Performance

    def observe_performance(self, source: MetricSource, metrics: list[MetricName] | None = None) -> list[MetricName]:
        """Subscribe to a runtime's web-vital signals."""
        try:
            return self.performance.observe(source, metrics)
        except Exception as e:
            self.logger.exception("Failed to observe performance", error=str(e))
            return []

    def report_metric(
        self,
        name: MetricName | str,
        value: float,
        delta: float | None = None,
        metric_id: str | None = None,
    ) -> Metric | None:
        """Classify and track one raw web-vital measurement."""
        try:
            return self.performance.report(name, value, delta=delta, metric_id=metric_id)
        except Exception as e:
            self.logger.exception("Failed to report metric", metric=str(name), error=str(e))
            return None

    def on_metric(self, callback: Callable[[Metric], Any]) -> Callable[[], None]:
        try:
            return self.performance.on_metric(callback)
        except Exception as e:
            self.logger.exception("Failed to register metric callback", error=str(e))
            return lambda: None

    # Delivery lifecycle

    def start(self) -> bool:
        """Arm the interval flush timer.

        Returns:
            False when there is no running event loop; events then wait for
            an explicit ``flush``, ``page_hide`` or ``shutdown``.
        """
        try:
            self.worker.start()
        except RuntimeError as e:
            self.logger.warning("No running event loop, interval flush not armed", error=str(e))
            return False
        except Exception as e:
            self.logger.exception("Failed to start delivery timer", error=str(e))
            return False
        return True

    async def flush(self) -> DeliveryOutcome | None:
        try:
            return await self.worker.flush(FlushReason.MANUAL)
        except Exception as e:
            self.logger.exception("Manual flush failed", error=str(e))
            return None

    async def page_hide(self) -> DeliveryOutcome | None:
        """Best-effort flush when the page is hidden or unloading."""
        try:
            return await self.worker.page_hide()
        except Exception as e:
            self.logger.exception("Page-hide flush failed", error=str(e))
            return None

    async def shutdown(self) -> DeliveryOutcome | None:
        """Stop the timer and attempt one final delivery."""
        try:
            return await self.worker.shutdown()
        except Exception as e:
            self.logger.exception("Shutdown flush failed", error=str(e))
            return None


# Singleton instance
_pipeline: TelemetryPipeline | None = None


def configure_pipeline(
    config: PipelineConfig | None = None,
    **kwargs: Any,
) -> TelemetryPipeline:
    """Create the process-wide pipeline, replacing any existing one."""
    global _pipeline
    _pipeline = TelemetryPipeline(config or PipelineConfig.from_env(), **kwargs)
    return _pipeline


def get_pipeline() -> TelemetryPipeline:
    """Get the process-wide pipeline, creating a default one on first use.

    Returns:
        TelemetryPipeline instance.
    """
    global _pipeline
    if _pipeline is None:
        _pipeline = TelemetryPipeline(PipelineConfig.from_env())
    return _pipeline


def reset_pipeline() -> None:
    """Drop the process-wide pipeline (for testing)."""
    global _pipeline
    _pipeline = None
