"""
Observability utilities for declarative-sync.

This module provides metrics and structured logging for the synchronizer.
"""

from .logging import (
    OperatorLogger,
    set_correlation_id,
    setup_logging_from_settings,
    setup_structured_logging,
)
from .metrics import MetricsCollector, get_metrics_registry, metrics_collector

__all__ = [
    "MetricsCollector",
    "OperatorLogger",
    "get_metrics_registry",
    "metrics_collector",
    "set_correlation_id",
    "setup_logging_from_settings",
    "setup_structured_logging",
]
