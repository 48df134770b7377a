"""
Unit tests for engine timing metrics.

Tests timing statistics, counters and the timed decorator.
"""

import logging
import time

import pytest

from src.metrics import PerformanceMetrics, TimingStats, get_metrics, metrics, timed


class TestTimingStats:
    def test_initial_values(self):
        stats = TimingStats(name="test")
        assert stats.count == 0
        assert stats.min_ms == float('inf')
        assert stats.avg_ms == 0.0
        assert stats.last_ms == 0.0

    def test_record_multiple(self):
        stats = TimingStats(name="test")
        for value in (5.0, 15.0, 10.0):
            stats.record(value)

        assert stats.count == 3
        assert stats.total_ms == 30.0
        assert stats.min_ms == 5.0
        assert stats.max_ms == 15.0
        assert stats.avg_ms == 10.0
        assert stats.last_ms == 10.0

    def test_recent_window_bounded(self):
        stats = TimingStats(name="test")
        for i in range(60):
            stats.record(float(i))
        assert len(stats.recent_ms) == 50
        assert stats.count == 60

    def test_to_dict_empty(self):
        data = TimingStats(name="test").to_dict()
        assert data["min_ms"] == 0
        assert data["count"] == 0


class TestPerformanceMetrics:
    @pytest.fixture
    def perf(self):
        return PerformanceMetrics()

    def test_timer_records(self, perf):
        with perf.timer("kpi_compute"):
            time.sleep(0.01)
        stats = perf.get_timing("kpi_compute")
        assert stats.count == 1
        assert stats.total_ms >= 5

    def test_timer_records_on_exception(self, perf):
        with pytest.raises(ValueError):
            with perf.timer("failing"):
                raise ValueError("boom")
        assert perf.get_timing("failing").count == 1

    def test_slow_operation_logged(self, caplog):
        perf = PerformanceMetrics(slow_threshold_ms=0.0)
        with caplog.at_level(logging.WARNING, logger="src.metrics"):
            with perf.timer("slow"):
                time.sleep(0.001)
        assert "Slow operation: slow" in caplog.text

    def test_counters(self, perf):
        perf.increment("records_processed", 10)
        perf.increment("records_processed")
        assert perf.get_counter("records_processed") == 11
        assert perf.get_counter("unknown") == 0

    def test_summary_and_reset(self, perf):
        perf.increment("batches_loaded")
        with perf.timer("batch_load"):
            pass
        summary = perf.get_summary()
        assert summary["counters"] == {"batches_loaded": 1}
        assert "batch_load" in summary["timings"]

        perf.reset()
        summary = perf.get_summary()
        assert summary["counters"] == {}
        assert summary["timings"] == {}


class TestTimedDecorator:
    def test_timed_uses_global_metrics(self):
        @timed("test_timed_function")
        def add(a, b):
            return a + b

        before = metrics.get_timing("test_timed_function")
        before_count = before.count if before else 0
        assert add(2, 3) == 5
        assert metrics.get_timing("test_timed_function").count == before_count + 1
        assert add.__name__ == "add"

    def test_get_metrics(self):
        assert get_metrics() is metrics
