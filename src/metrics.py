"""
Engine operation timings and counters.

KPI groups, whole KPI sets, integrity runs and spreadsheet parsing
report here; the service publishes the summary on /api/metrics.

Usage:
    from src.metrics import metrics, timed

    with metrics.timer("kpi_group_cargo"):
        values = cargo_metrics(scoped)

    @timed("integrity_validate")
    def validate(self, batch):
        ...

    metrics.increment("rows_skipped", skipped)
"""

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from functools import wraps
from threading import Lock
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

RECENT_SAMPLES = 50


@dataclass
class TimingStats:
    """Running duration statistics for one named operation."""
    name: str
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float('inf')
    max_ms: float = 0.0
    recent_ms: deque = field(default_factory=lambda: deque(maxlen=RECENT_SAMPLES))

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    @property
    def last_ms(self) -> float:
        return self.recent_ms[-1] if self.recent_ms else 0.0

    def record(self, duration_ms: float):
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        self.recent_ms.append(duration_ms)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.avg_ms, 3),
            "min_ms": 0 if self.count == 0 else round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "last_ms": round(self.last_ms, 3),
        }


class PerformanceMetrics:
    """
    Timing and counter store shared by the engine.

    KPI groups may run on a worker pool, so all updates take one lock.
    Operations slower than SLOW_THRESHOLD_MS are logged as warnings.
    """

    SLOW_THRESHOLD_MS = 500.0

    def __init__(self, slow_threshold_ms: Optional[float] = None):
        self._timings: Dict[str, TimingStats] = {}
        self._counters: Dict[str, int] = {}
        self._lock = Lock()
        self._since = datetime.now()
        if slow_threshold_ms is not None:
            self.SLOW_THRESHOLD_MS = slow_threshold_ms

    @contextmanager
    def timer(self, name: str):
        """Time the enclosed block, including when it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - start) * 1000)

    def observe(self, name: str, elapsed_ms: float):
        with self._lock:
            stats = self._timings.setdefault(name, TimingStats(name=name))
            stats.record(elapsed_ms)
        if elapsed_ms > self.SLOW_THRESHOLD_MS:
            logger.warning(f"Slow operation: {name} took {elapsed_ms:.1f}ms (threshold: {self.SLOW_THRESHOLD_MS}ms)")

    def increment(self, name: str, amount: int = 1):
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_timing(self, name: str) -> Optional[TimingStats]:
        with self._lock:
            return self._timings.get(name)

    def get_summary(self) -> dict:
        with self._lock:
            return {
                "uptime_seconds": round((datetime.now() - self._since).total_seconds(), 1),
                "timings": {name: stats.to_dict() for name, stats in self._timings.items()},
                "counters": dict(self._counters),
            }

    def reset(self):
        with self._lock:
            self._timings.clear()
            self._counters.clear()
            self._since = datetime.now()


metrics = PerformanceMetrics()


def timed(name: str):
    """Decorator: record each call's duration under ``name``."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            with metrics.timer(name):
                return func(*args, **kwargs)
        return wrapper
    return decorator


def get_metrics() -> PerformanceMetrics:
    return metrics
