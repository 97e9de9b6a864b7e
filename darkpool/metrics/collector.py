"""
Darkpool Prometheus Metrics Collector

Pure-Python Prometheus exposition format implementation; the text format is
rendered here so the engine needs no ``prometheus_client``.

Metric types:
    - Counter:   monotonically increasing (e.g. swaps_total)
    - Gauge:     can go up and down (e.g. pools_initialized)
    - Histogram: operation latencies with configurable buckets

Nothing recorded here may be derived from real reserves or trade sizes:
counters count operations, the histogram times them.
"""

from __future__ import annotations

import math
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Metric primitives
# ---------------------------------------------------------------------------

@dataclass
class Counter:
    """Monotonically increasing counter."""
    name: str
    help: str = ""
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Counter can only be incremented")
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        return self._value

    def expose(self) -> str:
        lines = []
        if self.help:
            lines.append(f"# HELP {self.name} {self.help}")
        lines.append(f"# TYPE {self.name} counter")
        lines.append(f"{self.name} {self._value}")
        return "\n".join(lines)


@dataclass
class Gauge:
    """Gauge that can go up and down."""
    name: str
    help: str = ""
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        return self._value

    def expose(self) -> str:
        lines = []
        if self.help:
            lines.append(f"# HELP {self.name} {self.help}")
        lines.append(f"# TYPE {self.name} gauge")
        lines.append(f"{self.name} {self._value}")
        return "\n".join(lines)


# Operation latency buckets, in seconds. Engine operations are in-memory.
DEFAULT_BUCKETS: Tuple[float, ...] = (
    0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0,
)


@dataclass
class Histogram:
    """Histogram with configurable buckets."""
    name: str
    help: str = ""
    buckets: Tuple[float, ...] = DEFAULT_BUCKETS
    _bucket_counts: Dict[float, int] = field(default_factory=dict, repr=False)
    _sum: float = 0.0
    _count: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        if not self._bucket_counts:
            self._bucket_counts = {b: 0 for b in self.buckets}

    def observe(self, value: float) -> None:
        with self._lock:
            self._sum += value
            self._count += 1
            # Only the smallest matching bucket; expose() accumulates
            for b in sorted(self.buckets):
                if value <= b:
                    self._bucket_counts[b] += 1
                    break

    @contextmanager
    def time(self) -> Iterator[None]:
        """Observe the wall-clock duration of the ``with`` body."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(time.perf_counter() - start)

    @property
    def count(self) -> int:
        return self._count

    @property
    def sum(self) -> float:
        return self._sum

    def expose(self) -> str:
        lines = []
        if self.help:
            lines.append(f"# HELP {self.name} {self.help}")
        lines.append(f"# TYPE {self.name} histogram")

        cumulative = 0
        for b in sorted(self.buckets):
            cumulative += self._bucket_counts.get(b, 0)
            lines.append(f'{self.name}_bucket{{le="{b}"}} {cumulative}')

        lines.append(f'{self.name}_bucket{{le="+Inf"}} {self._count}')
        lines.append(f"{self.name}_sum {self._sum}")
        lines.append(f"{self.name}_count {self._count}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class MetricsRegistry:
    """
    Holds every metric of one engine; ``expose()`` renders them all in
    Prometheus text format.
    """

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, metric: Any) -> None:
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"Metric already registered: {metric.name}")
            self._metrics[metric.name] = metric

    def get(self, name: str) -> Optional[Any]:
        return self._metrics.get(name)

    @property
    def metric_count(self) -> int:
        return len(self._metrics)

    def expose(self) -> str:
        parts: List[str] = []
        with self._lock:
            for metric in self._metrics.values():
                parts.append(metric.expose())
        return "\n\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Engine-level collector
# ---------------------------------------------------------------------------

class EngineMetrics:
    """
    Pre-configured metrics for one confidential pool engine.

    The engine updates these as operations commit or abort; call
    ``expose()`` for the Prometheus endpoint body.
    """

    def __init__(self, prefix: str = "darkpool"):
        self.registry = MetricsRegistry()

        # --- Swap metrics ---
        self.swaps_total = Counter(
            f"{prefix}_swaps_total",
            "Total swaps settled",
        )
        self.swaps_rejected_total = Counter(
            f"{prefix}_swaps_rejected_total",
            "Total swaps aborted (liquidity, imbalance or settlement)",
        )

        # --- Liquidity / keeper metrics ---
        self.liquidity_ops_total = Counter(
            f"{prefix}_liquidity_operations_total",
            "Total liquidity deposits and withdrawals",
        )
        self.rebalances_total = Counter(
            f"{prefix}_rebalances_total",
            "Total keeper rebalances",
        )

        # --- Engine-wide ---
        self.operations_failed_total = Counter(
            f"{prefix}_operations_failed_total",
            "Total operations rolled back",
        )
        self.pools_initialized = Gauge(
            f"{prefix}_pools_initialized",
            "Number of initialized pools",
        )
        self.operation_latency = Histogram(
            f"{prefix}_operation_seconds",
            "Engine operation latency in seconds",
        )

        for attr_name in dir(self):
            attr = getattr(self, attr_name)
            if isinstance(attr, (Counter, Gauge, Histogram)):
                self.registry.register(attr)

    def expose(self) -> str:
        return self.registry.expose()
