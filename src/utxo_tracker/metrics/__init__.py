"""Metrics — Prometheus metrics for tracing and tree building."""

from __future__ import annotations

from utxo_tracker.metrics.collector import MetricsCollector, TrackerMetrics

__all__ = ["MetricsCollector", "TrackerMetrics"]
