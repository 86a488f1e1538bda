"""Metrics collector — Prometheus counters, gauges, histograms.

Exported series:
- ``utxo_tracer_edges_total`` counter-vec (source: exact, heuristic)
- ``utxo_tracer_truncations_total`` counter
- ``utxo_provider_skips_total`` counter-vec (reason: not_found, unavailable)
- ``utxo_trees_built`` gauge
- ``utxo_tree_build_seconds`` histogram
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

    from utxo_tracker.engine.models import EdgeSet

_PREFIX = "utxo"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Every metric it creates is named ``<namespace>_<name>``. Use
    :class:`TrackerMetrics` for the high-level tracking interface.
    """

    def __init__(
        self, registry: CollectorRegistry | None = None, *, namespace: str = _PREFIX
    ) -> None:
        """Initialize the collector.

        Args:
            registry: Registry to register metrics in. A private one is created
                when omitted, so several trackers can live in one process.
            namespace: Prefix for every metric name.
        """
        self._registry = registry or CollectorRegistry()
        self._namespace = namespace

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def _name(self, name: str) -> str:
        return f"{self._namespace}_{name}" if self._namespace else name

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(self._name(name), doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(self._name(name), doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter.

        Prometheus appends ``_total`` to the exported sample name.
        """
        return Counter(self._name(name), doc, labels, registry=self._registry)


class TrackerMetrics:
    """Tracing, provider and tree-building metrics.

    Every core entry point takes an optional ``metrics`` argument; passing
    None disables collection.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._edges = self._collector.counter(
            "tracer_edges",
            "Spend edges found by the relationship tracer",
            ("source",),
        )
        self._truncations = self._collector.counter(
            "tracer_truncations",
            "Traversal branches cut by the depth or path-length bound",
        )
        self._provider_skips = self._collector.counter(
            "provider_skips",
            "Transaction ids skipped after a provider error",
            ("reason",),
        )
        self._trees = self._collector.gauge(
            "trees_built",
            "Number of trees produced by the last build",
        )
        self._build = self._collector.histogram(
            "tree_build_seconds",
            "Duration of tree build operations",
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the registry the tracker metrics are registered in."""
        return self._collector.registry

    def record_edges(self, edges: EdgeSet) -> None:
        """Count the edges of a finished trace by source, plus its truncations.

        Args:
            edges: Result of a heuristic or exact trace.
        """
        counts: dict[str, int] = {}
        for edge in edges:
            counts[edge.source.value] = counts.get(edge.source.value, 0) + 1
        for source, count in counts.items():
            self._edges.labels(source=source).inc(count)
        if edges.truncated:
            self._truncations.inc(edges.truncated)

    def provider_skip(self, reason: str) -> None:
        """Count one transaction id dropped from a batch fetch.

        Args:
            reason: ``not_found`` or ``unavailable``.
        """
        self._provider_skips.labels(reason=reason).inc()

    def set_trees_built(self, count: int) -> None:
        self._trees.set(count)

    @contextmanager
    def track_build(self) -> Iterator[None]:
        """Track the duration of a tree build."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._build.observe(time.monotonic() - start)
