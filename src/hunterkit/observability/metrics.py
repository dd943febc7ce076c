from __future__ import annotations

"""
hunterkit.observability.metrics
===============================

Prometheus metrics for the admission pipeline.

- SafeCounter/SafeHistogram: label-allowlisted wrappers to keep cardinality low.
- PipelineMetrics: the bundle one pipeline instance updates.

Pass a dedicated `CollectorRegistry` when several pipelines live in one
process (tests do); otherwise the default global registry is used.
"""

from collections.abc import Iterable, Mapping, Sequence

import prometheus_client as prom

__all__ = [
    "PipelineMetrics",
    "SafeCounter",
    "SafeHistogram",
]


class _LabelChecker:
    __slots__ = ("_allowed",)

    def __init__(self, allowed: Iterable[str] | None) -> None:
        self._allowed = frozenset(allowed or ())

    def validate(self, labels: Mapping[str, str]) -> None:
        unknown = [k for k in labels if k not in self._allowed]
        if unknown:
            raise ValueError(f"Unknown label(s) for metric: {unknown}; allowed={sorted(self._allowed)}")


class SafeCounter:
    """
    Counter whose label names are checked on every `labels()` call.

        cnt = SafeCounter("hunterkit_decisions_total", "Admission decisions", label_names=["decision"])
        cnt.labels(decision="admit").inc()
    """

    def __init__(
        self,
        name: str,
        documentation: str,
        *,
        label_names: Sequence[str] | None = None,
        registry: prom.CollectorRegistry | None = None,
    ) -> None:
        self._checker = _LabelChecker(label_names)
        self._metric = prom.Counter(
            name, documentation, labelnames=list(label_names or []), registry=registry or prom.REGISTRY
        )

    def labels(self, **labels: str):
        self._checker.validate(labels)
        return self._metric.labels(**labels)


class SafeHistogram:
    """Histogram counterpart of SafeCounter (default prometheus buckets unless given)."""

    def __init__(
        self,
        name: str,
        documentation: str,
        *,
        label_names: Sequence[str] | None = None,
        registry: prom.CollectorRegistry | None = None,
        buckets: Sequence[float] | None = None,
    ) -> None:
        self._checker = _LabelChecker(label_names)
        self._metric = prom.Histogram(
            name,
            documentation,
            labelnames=list(label_names or []),
            registry=registry or prom.REGISTRY,
            buckets=list(buckets) if buckets is not None else prom.Histogram.DEFAULT_BUCKETS,
        )

    def labels(self, **labels: str):
        self._checker.validate(labels)
        return self._metric.labels(**labels)


class PipelineMetrics:
    """Counters and timings of admission cycles."""

    def __init__(self, registry: prom.CollectorRegistry | None = None, *, prefix: str = "hunterkit") -> None:
        self.cycles = SafeCounter(
            f"{prefix}_cycles_total", "Finished admission cycles", label_names=["outcome"], registry=registry
        )
        self.decisions = SafeCounter(
            f"{prefix}_task_decisions_total", "Per-task admission decisions", label_names=["decision"], registry=registry
        )
        self.failures = SafeCounter(
            f"{prefix}_failures_total", "Reported technical failures", label_names=["kind"], registry=registry
        )
        self.cycle_seconds = SafeHistogram(
            f"{prefix}_cycle_duration_seconds",
            "Wall time of one admission cycle",
            label_names=["outcome"],
            registry=registry,
            buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
        )

    @classmethod
    def isolated(cls) -> PipelineMetrics:
        """Metrics on a private registry (not exported unless someone scrapes it)."""
        return cls(prom.CollectorRegistry())

    def cycle_finished(self, outcome: str, seconds: float) -> None:
        self.cycles.labels(outcome=outcome).inc()
        self.cycle_seconds.labels(outcome=outcome).observe(seconds)

    def decision(self, decision: str) -> None:
        self.decisions.labels(decision=decision).inc()

    def failure(self, kind: str) -> None:
        self.failures.labels(kind=kind).inc()

