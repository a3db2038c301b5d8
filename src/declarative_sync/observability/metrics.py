"""
Prometheus metrics for declarative-sync.

This module counts synchronizer operations by outcome and times the calls
made to the object store.
"""

import time
from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram

# Dedicated registry so that embedding operators decide what to expose
_metrics_registry = CollectorRegistry()

SYNC_OPERATIONS_TOTAL = Counter(
    "declarative_sync_operations_total",
    "Total number of synchronizer operations by outcome",
    ["operation", "kind", "result"],
    registry=_metrics_registry,
)

STORE_CALL_DURATION = Histogram(
    "declarative_sync_store_call_duration_seconds",
    "Time spent in object store calls",
    ["operation", "kind"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=_metrics_registry,
)

STORE_CALL_ERRORS = Counter(
    "declarative_sync_store_call_errors_total",
    "Total number of failed object store calls",
    ["operation", "kind", "error_type"],
    registry=_metrics_registry,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get the registry holding all synchronizer metrics."""
    return _metrics_registry


class MetricsCollector:
    """Records synchronizer metrics."""

    def __init__(self):
        self.registry = get_metrics_registry()

    @contextmanager
    def track_store_call(self, operation: str, kind: str):
        """
        Context manager timing one object store call.

        Errors are counted by exception type and re-raised.

        Args:
            operation: Store operation (get, create, update, delete)
            kind: Kind of the object
        """
        start_time = time.monotonic()
        try:
            yield
        except Exception as e:
            STORE_CALL_ERRORS.labels(
                operation=operation, kind=kind, error_type=type(e).__name__
            ).inc()
            raise
        finally:
            STORE_CALL_DURATION.labels(operation=operation, kind=kind).observe(
                time.monotonic() - start_time
            )

    def record_outcome(self, operation: str, kind: str, result: str) -> None:
        """
        Count the outcome of a synchronizer operation.

        Args:
            operation: Synchronizer operation (create, update, delete, sync, ...)
            kind: Kind of the object
            result: Outcome label (created, exists, updated, unchanged, ...)
        """
        SYNC_OPERATIONS_TOTAL.labels(operation=operation, kind=kind, result=result).inc()


metrics_collector = MetricsCollector()
