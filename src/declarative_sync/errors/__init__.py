"""
Error handling module for declarative-sync.

This module provides an error hierarchy that integrates with kopf and
separates retryable store conflicts from malformed input.
"""

from .operator_errors import (
    ConfigurationError,
    ExternalServiceError,
    InvalidObjectError,
    KubernetesAPIError,
    OperatorError,
    ResourceConflictError,
    TemporaryError,
    ValidationError,
)

__all__ = [
    "OperatorError",
    "ValidationError",
    "InvalidObjectError",
    "TemporaryError",
    "ResourceConflictError",
    "ExternalServiceError",
    "KubernetesAPIError",
    "ConfigurationError",
]
