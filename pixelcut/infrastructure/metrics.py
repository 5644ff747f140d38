from __future__ import annotations

from collections import defaultdict
from threading import Lock
from time import time


class MetricsStore:
    """Process-local counters, gauges and duration sums for the JSON and Prometheus endpoints."""

    def __init__(self, prefix: str = "pixelcut") -> None:
        self._prefix = prefix
        self._lock = Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = defaultdict(float)
        self._durations: dict[str, list[float]] = defaultdict(lambda: [0, 0.0])
        self._last_update_ts: int = int(time())

    def incr(self, key: str, value: int = 1) -> None:
        with self._lock:
            self._counters[key] += value
            self._last_update_ts = int(time())

    def set_gauge(self, key: str, value: float) -> None:
        with self._lock:
            self._gauges[key] = value
            self._last_update_ts = int(time())

    def observe(self, key: str, elapsed_ms: float) -> None:
        with self._lock:
            entry = self._durations[key]
            entry[0] += 1
            entry[1] += elapsed_ms
            self._last_update_ts = int(time())

    def snapshot(self) -> dict[str, int | float]:
        with self._lock:
            merged: dict[str, int | float] = dict(self._counters)
            merged.update(self._gauges)
            for key, (count, total) in self._durations.items():
                merged[f"{key}_ms_count"] = count
                merged[f"{key}_ms_sum"] = round(total, 3)
            merged["metrics_last_update_ts"] = self._last_update_ts
            return merged

    def to_prometheus_text(self) -> str:
        lines = []
        for key, value in sorted(self.snapshot().items()):
            metric = key.lower().replace("-", "_").replace(".", "_")
            lines.append(f"{self._prefix}_{metric} {value}")
        return "\n".join(lines) + "\n"


metrics = MetricsStore()
