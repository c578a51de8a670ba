"""Web performance observation.

The observer turns raw runtime measurements (paint timing, input
responsiveness, layout stability) into rated metrics, hands them to
registered callbacks and tracks them as ``web_vital`` events. It is purely
observational: nothing here blocks the caller, and subscription or
callback failures are logged, never raised.

Runtimes plug in through MetricSource; hosts without a native signal feed
can call ``report`` directly.
"""

import math
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import structlog

from pulsetrack.models.metric import Metric, MetricName, rate_metric
from pulsetrack.models.payloads import WebVitalPayload
from pulsetrack.utils.exceptions import UnsupportedMetricError

logger = structlog.get_logger()

MeasurementHandler = Callable[[float, float | None, str | None], None]
MetricCallback = Callable[[Metric], Any]


class MetricSource(ABC):
    """Runtime adapter that produces raw measurements for a signal."""

    @abstractmethod
    def subscribe(self, metric: MetricName, handler: MeasurementHandler) -> None:
        """Call ``handler(value, delta, metric_id)`` for each measurement.

        Raises:
            UnsupportedMetricError: If the runtime cannot observe ``metric``.
        """


class PerformanceObserver:
    """Classifies measurements and fans them out to callbacks and the event bus."""

    def __init__(self, track: Callable[[str, dict[str, Any]], Any] | None = None):
        """Initialize the observer.

        Args:
            track: Event sink called as ``track(name, properties)``.
        """
        self.track = track
        self._callbacks: list[MetricCallback] = []
        self.logger = logger.bind(service="performance_observer")

    def on_metric(self, callback: MetricCallback) -> Callable[[], None]:
        """Register a callback for every classified metric.

        Returns:
            A function that removes the callback again.
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def observe(self, source: MetricSource, metrics: list[MetricName] | None = None) -> list[MetricName]:
        """Subscribe to a runtime's signals.

        Args:
            source: Runtime adapter.
            metrics: Signals to observe. Defaults to all supported signals.

        Returns:
            The signals that were subscribed successfully.
        """
        subscribed = []
        for metric in metrics or list(MetricName):
            try:
                source.subscribe(metric, self._handler_for(metric))
                subscribed.append(metric)
            except UnsupportedMetricError:
                self.logger.info("Metric not supported by runtime", metric=metric.value)
            except Exception as e:
                self.logger.warning("Metric subscription failed", metric=metric.value, error=str(e))
        return subscribed

    def _handler_for(self, metric: MetricName) -> MeasurementHandler:
        def handle(value: float, delta: float | None = None, metric_id: str | None = None) -> None:
            self.report(metric, value, delta=delta, metric_id=metric_id)

        return handle

    def report(
        self,
        name: MetricName | str,
        value: float,
        delta: float | None = None,
        metric_id: str | None = None,
    ) -> Metric | None:
        """Classify one raw measurement and forward it.

        Returns:
            The classified metric, or None when the input was unusable.
        """
        try:
            metric_name = MetricName(name)
            rating = rate_metric(metric_name, value)
            kwargs: dict[str, Any] = {}
            if metric_id:
                kwargs["id"] = metric_id
            metric = Metric(
                name=metric_name,
                value=value,
                rating=rating,
                delta=value if delta is None else delta,
                **kwargs,
            )
        except Exception as e:
            self.logger.warning("Discarding unusable measurement", metric=str(name), value=value, error=str(e))
            return None

        for callback in list(self._callbacks):
            try:
                callback(metric)
            except Exception as e:
                self.logger.warning("Metric callback failed", metric=metric.name, error=str(e))

        if self.track is not None:
            payload = WebVitalPayload(
                metric=metric.name,
                value=metric.value,
                rating=metric.rating,
                delta=metric.delta,
                metric_id=metric.id,
            )
            self.track(payload.event_name, payload.to_properties())

        return metric


class PerformanceMonitor:
    """Named timers with summary statistics."""

    def __init__(self, slow_threshold_ms: float = 1000.0):
        self.slow_threshold_ms = slow_threshold_ms
        self._metrics: dict[str, list[float]] = {}
        self._start_times: dict[str, float] = {}
        self.logger = logger.bind(service="performance_monitor")

    def start_timer(self, name: str) -> None:
        self._start_times[name] = time.perf_counter()

    def end_timer(self, name: str) -> float:
        """Stop a timer and record its duration.

        Returns:
            Duration in milliseconds, or 0 if the timer was never started.
        """
        start = self._start_times.pop(name, None)
        if start is None:
            self.logger.warning("Timer was not started", timer=name)
            return 0.0

        duration = (time.perf_counter() - start) * 1000
        self._metrics.setdefault(name, []).append(duration)

        if duration > self.slow_threshold_ms:
            self.logger.warning("Slow operation detected", timer=name, duration_ms=round(duration, 2))
        return duration

    @contextmanager
    def measure(self, name: str) -> Iterator[None]:
        """Time the enclosed block under ``name``."""
        self.start_timer(name)
        try:
            yield
        finally:
            self.end_timer(name)

    def record(self, name: str, duration_ms: float) -> None:
        """Record an externally measured duration."""
        self._metrics.setdefault(name, []).append(duration_ms)

    def get_metrics(self, name: str) -> dict[str, float] | None:
        """Get count, avg, min, max, p95 and p99 for a timer."""
        measurements = self._metrics.get(name)
        if not measurements:
            return None

        ordered = sorted(measurements)
        count = len(ordered)
        return {
            "count": count,
            "avg": sum(ordered) / count,
            "min": ordered[0],
            "max": ordered[-1],
            "p95": ordered[math.floor(count * 0.95)],
            "p99": ordered[math.floor(count * 0.99)],
        }

    def get_all_metrics(self) -> dict[str, dict[str, float] | None]:
        return {name: self.get_metrics(name) for name in self._metrics}

    def clear(self) -> None:
        self._metrics.clear()
        self._start_times.clear()


DEFAULT_BUDGETS: dict[str, float] = {
    "page-load": 3000,  # ms
    "api-response": 500,  # ms
    "database-query": 100,  # ms
    "bundle-size": 500 * 1024,  # bytes
}


class PerformanceBudget:
    """Thresholds for named measurements."""

    def __init__(self, budgets: dict[str, float] | None = None):
        self.budgets = dict(DEFAULT_BUDGETS if budgets is None else budgets)

    def check_budget(self, metric: str, value: float) -> bool:
        """Return False (and log) when ``value`` exceeds the metric's budget.

        Metrics without a budget always pass.
        """
        budget = self.budgets.get(metric)
        if budget is None:
            return True

        if value > budget:
            logger.warning("Performance budget exceeded", metric=metric, value=value, budget=budget)
            return False
        return True

    def set_budget(self, metric: str, value: float) -> None:
        self.budgets[metric] = value
