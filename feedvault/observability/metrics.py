"""
In-process pipeline metrics.

Counters, gauges and histograms kept in memory and exposed at
``/api/metrics`` (Prometheus text format) and ``/api/metrics/json``.

Metric names used by the pipeline:

- ``entries_received_total`` / ``entries_persisted_total`` /
  ``entries_duplicate_total`` / ``entries_failed_total``
- ``archive_tasks_total{outcome}``, ``archive_tasks_rejected_total``
- ``uploads_total{strategy,result}``, ``notifications_total{result}``
- ``archive_queue_depth`` (gauge), ``archive_duration_ms`` (histogram)
"""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Archive runs are dominated by downloads: buckets span 1s .. 1h (ms).
ARCHIVE_DURATION_BUCKETS_MS = (1000, 5000, 15000, 30000, 60000, 300000, 900000, 3600000)


@dataclass
class _Counter:
    value: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(self, amount: float = 1.0) -> None:
        with self.lock:
            self.value += amount


@dataclass
class _Gauge:
    value: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def set(self, value: float) -> None:
        with self.lock:
            self.value = value


@dataclass
class _Histogram:
    count: int = 0
    total: float = 0.0
    buckets: Dict[float, int] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def __post_init__(self):
        if not self.buckets:
            self.buckets = {float(b): 0 for b in ARCHIVE_DURATION_BUCKETS_MS}
            self.buckets[float("inf")] = 0

    def observe(self, value: float) -> None:
        with self.lock:
            self.count += 1
            self.total += value
            for boundary in self.buckets:
                if value <= boundary:
                    self.buckets[boundary] += 1


def _key(name: str, labels: Optional[Dict[str, str]]) -> str:
    """``name{k="v",...}`` with labels sorted, or just ``name``."""
    if not labels:
        return name
    inner = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{name}{{{inner}}}"


class MetricsCollector:
    """Thread-safe singleton metrics store.

    Usage::

        mc = MetricsCollector()
        mc.inc("archive_tasks_total", labels={"outcome": "uploaded"})
        mc.observe("archive_duration_ms", 5231.0)
        mc.gauge_set("archive_queue_depth", 3)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsCollector":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._counters: Dict[str, _Counter] = defaultdict(_Counter)
        self._gauges: Dict[str, _Gauge] = defaultdict(_Gauge)
        self._histograms: Dict[str, _Histogram] = defaultdict(_Histogram)
        self._start_time = time.time()

    def inc(
        self, name: str, amount: float = 1.0, *, labels: Optional[Dict[str, str]] = None
    ) -> None:
        self._counters[_key(name, labels)].inc(amount)

    def gauge_set(
        self, name: str, value: float, *, labels: Optional[Dict[str, str]] = None
    ) -> None:
        self._gauges[_key(name, labels)].set(value)

    def observe(self, name: str, value: float, *, labels: Optional[Dict[str, str]] = None) -> None:
        self._histograms[_key(name, labels)].observe(value)

    def counter_value(self, name: str, *, labels: Optional[Dict[str, str]] = None) -> float:
        counter = self._counters.get(_key(name, labels))
        return counter.value if counter else 0.0

    def uptime_seconds(self) -> float:
        return time.time() - self._start_time

    # ── Export ───────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of every metric."""
        return {
            "uptime_seconds": round(self.uptime_seconds(), 1),
            "counters": {k: c.value for k, c in self._counters.items()},
            "gauges": {k: g.value for k, g in self._gauges.items()},
            "histograms": {
                k: {
                    "count": h.count,
                    "sum": round(h.total, 2),
                    "avg": round(h.total / h.count, 2) if h.count else 0,
                }
                for k, h in self._histograms.items()
            },
        }

    def prometheus_exposition(self) -> str:
        """Prometheus text exposition format."""
        lines: List[str] = [
            "# TYPE uptime_seconds gauge",
            f"uptime_seconds {self.uptime_seconds():.1f}",
        ]
        for key, c in sorted(self._counters.items()):
            lines.append(f"{key} {c.value}")
        for key, g in sorted(self._gauges.items()):
            lines.append(f"{key} {g.value}")
        for key, h in sorted(self._histograms.items()):
            base, _, rest = key.partition("{")
            labels_part = "{" + rest if rest else ""
            for boundary, count in sorted(h.buckets.items()):
                le = "+Inf" if boundary == float("inf") else f"{boundary:.0f}"
                if labels_part:
                    lbl = labels_part[:-1] + f',le="{le}"}}'
                else:
                    lbl = f'{{le="{le}"}}'
                lines.append(f"{base}_bucket{lbl} {count}")
            lines.append(f"{base}_sum{labels_part} {h.total:.2f}")
            lines.append(f"{base}_count{labels_part} {h.count}")
        return "\n".join(lines) + "\n"

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for tests)."""
        with cls._lock:
            cls._instance = None
