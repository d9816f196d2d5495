"""Metrics collection and monitoring."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class Counter:
    """Simple counter metric."""
    name: str
    value: int = 0
    labels: Dict[str, str] = field(default_factory=dict)

    def inc(self, amount: int = 1):
        self.value += amount


@dataclass
class Gauge:
    """Simple gauge metric."""
    name: str
    value: float = 0.0
    labels: Dict[str, str] = field(default_factory=dict)

    def set(self, value: float):
        self.value = value


class MetricsCollector:
    """
    Collects ingest counters and gauges.

    Everything runs on one event loop, so no locking is needed.
    """

    def __init__(self):
        self._counters: Dict[str, Counter] = {}
        self._gauges: Dict[str, Gauge] = {}
        self._start_time = time.time()

    # === Counters ===

    def counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> Counter:
        """Get or create a counter."""
        key = f"{name}:{labels}" if labels else name
        if key not in self._counters:
            self._counters[key] = Counter(name=name, labels=labels or {})
        return self._counters[key]

    def inc(self, name: str, amount: int = 1, labels: Optional[Dict[str, str]] = None):
        """Increment a counter."""
        self.counter(name, labels).inc(amount)

    # === Gauges ===

    def gauge(self, name: str, labels: Optional[Dict[str, str]] = None) -> Gauge:
        """Get or create a gauge."""
        key = f"{name}:{labels}" if labels else name
        if key not in self._gauges:
            self._gauges[key] = Gauge(name=name, labels=labels or {})
        return self._gauges[key]

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """Set a gauge value."""
        self.gauge(name, labels).set(value)

    # === Convenience methods ===

    def record_frame(self):
        self.inc("frames_received_total")

    def record_frame_error(self):
        self.inc("frame_errors_total")

    def record_write(self, kind: str, ok: bool):
        """Record the outcome of a backend write."""
        name = "records_written_total" if ok else "records_failed_total"
        self.inc(name, labels={"kind": kind})

    def record_fetch(self, ok: bool):
        self.inc("metadata_fetched_total" if ok else "metadata_failed_total")

    def record_reconnect(self):
        self.inc("feed_reconnects_total")

    def set_subscribed_mints(self, count: int):
        self.set_gauge("subscribed_mints", count)

    def set_inflight_frames(self, count: int):
        self.set_gauge("inflight_frames", count)

    # === Export ===

    def sum_counters(self, name: str) -> int:
        """Sum counters with the same base name across all label sets."""
        return sum(counter.value for counter in self._counters.values() if counter.name == name)

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> int:
        key = f"{name}:{labels}" if labels else name
        counter = self._counters.get(key)
        return counter.value if counter else 0

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of key metrics."""
        frames = self.sum_counters("frames_received_total")
        uptime = time.time() - self._start_time
        subscribed = self._gauges.get("subscribed_mints", Gauge("subscribed_mints"))
        inflight = self._gauges.get("inflight_frames", Gauge("inflight_frames"))

        return {
            "uptime_seconds": uptime,
            "uptime_human": self._format_duration(uptime),
            "frames_received": frames,
            "frames_per_second": frames / uptime if uptime > 0 else 0,
            "frame_errors": self.sum_counters("frame_errors_total"),
            "records_written": self.sum_counters("records_written_total"),
            "records_failed": self.sum_counters("records_failed_total"),
            "metadata_fetched": self.sum_counters("metadata_fetched_total"),
            "metadata_failed": self.sum_counters("metadata_failed_total"),
            "reconnects": self.sum_counters("feed_reconnects_total"),
            "subscribed_mints": int(subscribed.value),
            "inflight_frames": int(inflight.value),
        }

    @staticmethod
    def _format_duration(seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.0f}s"
        elif seconds < 3600:
            return f"{seconds / 60:.0f}m"
        elif seconds < 86400:
            return f"{seconds / 3600:.1f}h"
        else:
            return f"{seconds / 86400:.1f}d"
