"""
Darkpool Metrics Module

Prometheus-compatible engine metrics.
"""

from .collector import (
    EngineMetrics,
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
)

__all__ = [
    "EngineMetrics",
    "Counter",
    "Gauge",
    "Histogram",
    "MetricsRegistry",
]
