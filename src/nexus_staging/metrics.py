"""Prometheus metrics for staging operations.

Metrics Defined:
- nexus_staging_operations_total: Counter of operations by outcome
- nexus_staging_operation_duration_seconds: Histogram of operation time

The CLI can push or print these after a run; tests pass a private
CollectorRegistry so metric names never collide.
"""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


# Polling takes seconds to minutes; cover 1 second to 30 minutes
DEFAULT_DURATION_BUCKETS = (
    1.0,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
    1800.0,
)

OUTCOMES = ("success", "failed", "timed_out", "cancelled", "error")


class StagingMetrics:
    """Container for staging Prometheus metrics.

    Metrics:
        operations_total: Counter of finished operations.
            Labels: operation (close/promote/drop), outcome
        operation_duration_seconds: Histogram of operation wall time.
            Labels: operation

    Example:
        >>> metrics = StagingMetrics(registry=CollectorRegistry())
        >>> metrics.record("close", "success", 12.5)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize staging metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY.
        """
        self.registry = registry or REGISTRY

        self.operations_total = Counter(
            "nexus_staging_operations_total",
            "Total staging operations by outcome",
            labelnames=["operation", "outcome"],
            registry=self.registry,
        )

        self.operation_duration_seconds = Histogram(
            "nexus_staging_operation_duration_seconds",
            "Time from issuing a staging command to its confirmed outcome",
            labelnames=["operation"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record(self, operation: str, outcome: str, duration_seconds: float) -> None:
        """Record one finished operation.

        Raises:
            ValueError: If outcome is not one of OUTCOMES.
        """
        if outcome not in OUTCOMES:
            raise ValueError(f"Unknown outcome: {outcome}")
        self.operations_total.labels(operation=operation, outcome=outcome).inc()
        self.operation_duration_seconds.labels(operation=operation).observe(
            duration_seconds
        )

    def generate_output(self) -> bytes:
        """Render this registry in Prometheus text format."""
        return generate_latest(self.registry)


_metrics: Optional[StagingMetrics] = None


def get_metrics() -> StagingMetrics:
    """Get or create the process-wide metrics on the default registry."""
    global _metrics
    if _metrics is None:
        _metrics = StagingMetrics()
    return _metrics
