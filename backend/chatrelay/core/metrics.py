"""
Simple in-process metrics registry for observability snapshots.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass
class Observation:
    """Running summary of observed values (e.g., stream durations)."""

    count: int = 0
    total: float = 0.0
    min: float | None = None
    max: float | None = None

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)

    def to_dict(self) -> dict[str, float | int | None]:
        return {
            "count": self.count,
            "sum": self.total,
            "min": self.min,
            "max": self.max,
            "avg": self.total / self.count if self.count else None,
        }


class MetricsRegistry:
    """Thread-safe counter/gauge/observation registry for lightweight instrumentation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {
            "provider_invocations_total": 0.0,
            "provider_invocation_errors_total": 0.0,
            "streams_opened_total": 0.0,
            "streams_abandoned_total": 0.0,
            "conversations_cleaned_total": 0.0,
        }
        self._gauges: dict[str, float] = {"active_streams": 0.0}
        self._observations: dict[str, Observation] = {"stream_duration_seconds": Observation()}

    def increment(self, name: str, amount: float = 1.0) -> None:
        """Increment a counter by the given amount."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0.0) + amount

    def observe(self, name: str, value: float) -> None:
        """Record one observation (e.g., a duration) under its own summary."""
        with self._lock:
            self._observations.setdefault(name, Observation()).add(value)

    def add_gauge(self, name: str, delta: float) -> None:
        """Adjust a gauge relative to its current value."""
        with self._lock:
            self._gauges[name] = self._gauges.get(name, 0.0) + delta

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = value

    def snapshot(self) -> dict[str, dict]:
        """Return a snapshot of current counters, gauges and observations."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "observations": {name: obs.to_dict() for name, obs in self._observations.items()},
            }


metrics = MetricsRegistry()
