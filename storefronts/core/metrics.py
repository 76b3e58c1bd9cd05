"""In-process counters exported in Prometheus text format at /metrics."""

from __future__ import annotations

import re
import threading
from typing import Dict, Iterable, List, Optional, Tuple

LabelValues = Tuple[str, ...]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\n")


class Counter:
    """Monotonic counter keyed by a fixed set of label names."""

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None, description: str = ""):
        self.name = name
        self.description = description
        self.label_names = tuple(label_names or ())
        self._values: Dict[LabelValues, float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelValues:
        labels = labels or {}
        unknown = set(labels) - set(self.label_names)
        if unknown:
            raise ValueError(f"{self.name}: unknown labels {sorted(unknown)}")
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("counters only go up")
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + float(amount)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        key = self._key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def _series(self, values: LabelValues) -> str:
        if not self.label_names:
            return self.name
        pairs = ",".join(f'{name}="{_escape(value)}"' for name, value in zip(self.label_names, values))
        return f"{self.name}{{{pairs}}}"

    def export(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.description}"] if self.description else []
        lines.append(f"# TYPE {self.name} counter")
        with self._lock:
            snapshot = sorted(self._values.items())
        lines.extend(f"{self._series(values)} {value}" for values, value in snapshot)
        return lines

    def reset(self) -> None:
        with self._lock:
            self._values.clear()


class MetricsRegistry:
    def __init__(self):
        self._counters: Dict[str, Counter] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, label_names: Optional[Iterable[str]] = None, description: str = "") -> Counter:
        """Register a counter, or return the one already registered under `name`."""
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name, label_names, description)
            return self._counters[name]

    def export_prometheus(self) -> str:
        with self._lock:
            counters = list(self._counters.values())
        lines: List[str] = []
        for counter in counters:
            lines.extend(counter.export())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            counters = list(self._counters.values())
        for counter in counters:
            counter.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter(
    "http_requests_total", ["method", "path", "status"], "HTTP requests by method, path and status"
)
edge_decisions_total = METRICS.counter(
    "edge_decisions_total", ["outcome", "reason"], "Edge routing decisions"
)
quota_denials_total = METRICS.counter(
    "quota_denials_total", ["resource"], "Creations refused by a plan limit"
)
store_degraded_reads_total = METRICS.counter(
    "store_degraded_reads_total", ["operation"], "Reads answered with a fallback after a store failure"
)


_ID_SEGMENT = re.compile(r"^(\d+|[0-9a-fA-F-]{8,})$")


def normalize_path(path: str) -> str:
    """Replace numeric and uuid-like path segments with :id."""
    segments = [":id" if _ID_SEGMENT.match(seg) else seg for seg in path.split("/") if seg]
    return "/" + "/".join(segments)
