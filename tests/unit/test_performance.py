"""Tests for performance observation."""

import time

import pytest
from structlog.testing import capture_logs

from pulsetrack.models.metric import MetricName
from pulsetrack.services.performance import (
    MetricSource,
    PerformanceBudget,
    PerformanceMonitor,
    PerformanceObserver,
)
from pulsetrack.utils.exceptions import UnsupportedMetricError


class FakeRuntime(MetricSource):
    """Runtime that supports a fixed set of signals."""

    def __init__(self, supported):
        self.supported = set(supported)
        self.handlers = {}

    def subscribe(self, metric, handler):
        if metric not in self.supported:
            raise UnsupportedMetricError(metric.value)
        self.handlers[metric] = handler


class TestPerformanceObserver:
    """Tests for PerformanceObserver."""

    def test_report_classifies_and_tracks(self):
        tracked = []
        observer = PerformanceObserver(track=lambda name, props: tracked.append((name, props)))

        metric = observer.report("LCP", 3100.0, metric_id="m-1")

        assert metric.rating == "needs-improvement"
        assert metric.delta == 3100.0
        assert tracked == [
            (
                "web_vital",
                {
                    "metric": "LCP",
                    "value": 3100.0,
                    "rating": "needs-improvement",
                    "delta": 3100.0,
                    "metric_id": "m-1",
                },
            )
        ]

    def test_callbacks_receive_metrics(self):
        observer = PerformanceObserver()
        received = []
        unsubscribe = observer.on_metric(received.append)

        observer.report(MetricName.CLS, 0.02)
        unsubscribe()
        observer.report(MetricName.CLS, 0.5)

        assert [m.rating for m in received] == ["good"]

    def test_failing_callback_is_isolated(self):
        observer = PerformanceObserver()
        received = []
        observer.on_metric(lambda metric: 1 / 0)
        observer.on_metric(received.append)

        metric = observer.report("FCP", 900)

        assert metric is not None
        assert len(received) == 1

    def test_unusable_measurement_discarded(self):
        observer = PerformanceObserver()

        assert observer.report("FPS", 60) is None

    def test_observe_skips_unsupported_signals(self):
        observer = PerformanceObserver()
        runtime = FakeRuntime({MetricName.LCP, MetricName.CLS})

        subscribed = observer.observe(runtime)

        assert set(subscribed) == {MetricName.LCP, MetricName.CLS}

    def test_runtime_measurements_flow_through(self):
        tracked = []
        observer = PerformanceObserver(track=lambda name, props: tracked.append(props))
        runtime = FakeRuntime({MetricName.INP})
        observer.observe(runtime, [MetricName.INP])

        runtime.handlers[MetricName.INP](600, 50, "inp-1")

        assert tracked[0]["rating"] == "poor"
        assert tracked[0]["delta"] == 50

    def test_broken_runtime_never_raises(self):
        class BrokenRuntime(MetricSource):
            def subscribe(self, metric, handler):
                raise RuntimeError("no observer api")

        assert PerformanceObserver().observe(BrokenRuntime()) == []


class TestPerformanceMonitor:
    """Tests for named timers."""

    def test_measure_records_duration(self):
        monitor = PerformanceMonitor()

        with monitor.measure("render"):
            time.sleep(0.001)

        stats = monitor.get_metrics("render")
        assert stats["count"] == 1
        assert stats["min"] > 0

    def test_statistics(self):
        monitor = PerformanceMonitor()
        for value in range(1, 101):
            monitor.record("api", float(value))

        stats = monitor.get_metrics("api")

        assert stats["count"] == 100
        assert stats["avg"] == 50.5
        assert stats["min"] == 1
        assert stats["max"] == 100
        assert stats["p95"] == 96
        assert stats["p99"] == 100

    def test_end_without_start(self):
        monitor = PerformanceMonitor()

        assert monitor.end_timer("never") == 0.0
        assert monitor.get_metrics("never") is None

    def test_slow_operation_logged(self):
        monitor = PerformanceMonitor(slow_threshold_ms=0)

        with capture_logs() as logs:
            with monitor.measure("slow"):
                time.sleep(0.001)

        assert any(log["event"] == "Slow operation detected" for log in logs)

    def test_clear(self):
        monitor = PerformanceMonitor()
        monitor.record("a", 1)

        monitor.clear()

        assert monitor.get_all_metrics() == {}


class TestPerformanceBudget:
    """Tests for performance budgets."""

    @pytest.mark.parametrize(
        "metric,value,expected",
        [("page-load", 2999, True), ("page-load", 3000, True), ("page-load", 3001, False), ("unknown", 1e9, True)],
    )
    def test_check_budget(self, metric, value, expected):
        assert PerformanceBudget().check_budget(metric, value) is expected

    def test_set_budget(self):
        budget = PerformanceBudget({})
        budget.set_budget("api-response", 200)

        assert budget.check_budget("api-response", 250) is False
