# dispatch_admin/infra/metrics.py
from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict
from dispatch_admin.infra.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Counter:
    """Simple counter metric"""
    value: int = 0

    def inc(self, amount: int = 1) -> None:
        self.value += amount


class MetricsCollector:
    """
    In-process counters for backend calls, poll cycles and mutations.

    Single event loop only: counters are not guarded by a lock.
    """

    def __init__(self):
        self._counters: Dict[str, Counter] = defaultdict(Counter)

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        """Increment a counter metric"""
        self._counters[self._make_key(name, labels)].inc(amount)

    def get(self, name: str, **labels) -> int:
        """Current value of a counter (0 if never incremented)"""
        key = self._make_key(name, labels or None)
        counter = self._counters.get(key)
        return counter.value if counter else 0

    def get_metrics(self) -> dict:
        """Get all current metrics"""
        return {"counters": {k: v.value for k, v in self._counters.items()}}

    def reset(self) -> None:
        """Reset all metrics"""
        self._counters.clear()
        logger.info("Metrics reset")

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        """Create a metric key from name and labels"""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector"""
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    """Increment a counter metric"""
    _metrics.inc_counter(name, amount, labels or None)
