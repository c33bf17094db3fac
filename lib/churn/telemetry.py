"""Operation counters and latencies for a churn run.

Informational only: the verdict never depends on these numbers.
"""
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Optional


@dataclass
class MetricSnapshot:
    """Point-in-time snapshot of metrics."""
    timestamp: datetime
    counters: Dict[str, int]
    histograms: Dict[str, list]


class HarnessMetrics:
    """Lock-protected counters and latency histograms, shared by workers."""

    OPERATIONS = 'churn.operations'
    LATENCY = 'churn.latency_ms'
    ITERATIONS = 'churn.iterations'

    HISTOGRAM_CAP = 1000

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._histograms: Dict[str, list] = {}

    def _make_key(self, name: str, labels: Dict[str, str] = None) -> str:
        if not labels:
            return name
        label_str = ','.join(f'{k}={v}' for k, v in sorted(labels.items()))
        return f'{name}{{{label_str}}}'

    def increment(self, name: str, value: int = 1, labels: Dict[str, str] = None):
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def record(self, name: str, value: float, labels: Dict[str, str] = None):
        key = self._make_key(name, labels)
        with self._lock:
            values = self._histograms.setdefault(key, [])
            values.append(value)
            if len(values) > self.HISTOGRAM_CAP:
                del values[:-self.HISTOGRAM_CAP]

    def record_operation(self, operation: str, outcome: str, latency_ms: float):
        """Record one lifecycle call and how it ended."""
        self.increment(self.OPERATIONS, labels={'operation': operation, 'outcome': outcome})
        self.record(self.LATENCY, latency_ms, labels={'operation': operation})

    def record_iteration(self, worker: str):
        self.increment(self.ITERATIONS, labels={'worker': worker})

    def get_counter(self, name: str, labels: Dict[str, str] = None) -> int:
        key = self._make_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def operation_count(self, operation: str, outcome: Optional[str] = None) -> int:
        """Count calls of one operation, optionally for a single outcome."""
        if outcome is not None:
            return self.get_counter(self.OPERATIONS, {'operation': operation, 'outcome': outcome})
        prefix = f"{self.OPERATIONS}{{operation={operation},"
        with self._lock:
            return sum(v for k, v in self._counters.items() if k.startswith(prefix))

    def get_histogram_stats(self, name: str, labels: Dict[str, str] = None) -> Dict[str, float]:
        key = self._make_key(name, labels)
        with self._lock:
            values = list(self._histograms.get(key, []))
        if not values:
            return {'count': 0, 'min': 0, 'max': 0, 'avg': 0, 'p50': 0, 'p95': 0, 'p99': 0}

        sorted_vals = sorted(values)
        count = len(sorted_vals)

        return {
            'count': count,
            'min': sorted_vals[0],
            'max': sorted_vals[-1],
            'avg': sum(sorted_vals) / count,
            'p50': sorted_vals[int(count * 0.5)],
            'p95': sorted_vals[int(count * 0.95)] if count > 20 else sorted_vals[-1],
            'p99': sorted_vals[int(count * 0.99)] if count > 100 else sorted_vals[-1],
        }

    def snapshot(self) -> MetricSnapshot:
        with self._lock:
            return MetricSnapshot(
                timestamp=datetime.now(timezone.utc),
                counters=dict(self._counters),
                histograms={k: list(v) for k, v in self._histograms.items()}
            )

    def get_summary(self) -> Dict[str, Any]:
        """Counters plus latency stats per operation."""
        snapshot = self.snapshot()
        latency = {}
        for key in snapshot.histograms:
            operation = key.split('operation=', 1)[-1].rstrip('}')
            latency[operation] = self.get_histogram_stats(self.LATENCY, {'operation': operation})

        return {
            'timestamp': snapshot.timestamp.isoformat(),
            'counters': snapshot.counters,
            'latency_ms': latency,
        }

    def reset(self):
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
