"""
Structured logging utilities for declarative-sync.

This module provides correlation ID tracking and structured log formatting
so that synchronizer traces can be joined with the reconcile loop that
produced them.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variable for tracking correlation IDs across one reconcile pass
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Extra fields copied verbatim into JSON log lines
STRUCTURED_FIELDS = (
    "kind",
    "resource_name",
    "namespace",
    "operation",
    "outcome",
    "duration",
    "error_type",
    "diff",
    "finalizer",
)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Add correlation ID to the log record.

        Args:
            record: The log record to process

        Returns:
            True to allow the record to be processed
        """
        current_correlation_id = correlation_id.get()
        if not current_correlation_id:
            current_correlation_id = generate_correlation_id()
            correlation_id.set(current_correlation_id)

        record.correlation_id = current_correlation_id
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    Formats log records as one JSON object per line for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # extra={} fields land as record attributes
        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        Unique correlation ID string
    """
    return str(uuid.uuid4())[:8]


def set_correlation_id(corr_id: str) -> str:
    """
    Set the correlation ID for the current context.

    Args:
        corr_id: Correlation ID to set

    Returns:
        The correlation ID that was set
    """
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    """Get the current correlation ID, or an empty string if none is set."""
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
) -> None:
    """
    Set up structured logging on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if enable_json_formatting:
        formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = logging.Formatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Third-party libraries are noisy at DEBUG
    logging.getLogger("kopf").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def setup_logging_from_settings() -> None:
    """Configure logging from the environment-driven settings."""
    from ..settings import settings

    setup_structured_logging(
        log_level=settings.log_level,
        enable_json_formatting=settings.json_logs,
        correlation_id_enabled=settings.correlation_ids,
    )


class OperatorLogger:
    """
    Logger wrapper with helpers for synchronizer events.

    Every helper attaches the object identity as structured fields.
    """

    def __init__(self, name: str):
        """
        Initialize operator logger.

        Args:
            name: Logger name (usually the module or class name)
        """
        self.logger = logging.getLogger(name)

    def log_sync_operation(
        self,
        operation: str,
        kind: str,
        resource_name: str,
        namespace: str | None,
        outcome: str,
        **fields,
    ) -> None:
        """
        Trace one synchronizer operation at DEBUG level.

        Args:
            operation: Operation name (get, create, update, delete, sync)
            kind: Kind of the object
            resource_name: Name of the object
            namespace: Namespace of the object, None when cluster-scoped
            outcome: Short outcome label (created, exists, updated, unchanged, ...)
            **fields: Additional structured fields
        """
        if not self.logger.isEnabledFor(logging.DEBUG):
            return

        location = f"{namespace}/{resource_name}" if namespace else resource_name
        self.logger.debug(
            f"{operation} {kind} {location}: {outcome}",
            extra={
                "kind": kind,
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": operation,
                "outcome": outcome,
                **fields,
            },
        )

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with extra data."""
        self.logger.debug(message, extra=kwargs)
