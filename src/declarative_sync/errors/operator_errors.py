"""
Error hierarchy with categorization and retry logic.

This module defines the error types raised by the synchronizer, providing
clear categorization and integration with kopf's retry mechanisms.
"""

from typing import TYPE_CHECKING

import kopf
from kubernetes.client.rest import ApiException

from ..constants import CONFLICT_RETRY_DELAY

if TYPE_CHECKING:
    from ..models.identity import ObjectIdentity


class OperatorError(Exception):
    """
    Base error class for all synchronizer exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        delay: int = 30,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (validation, conflict, api, configuration)
            retryable: Whether kopf should retry this operation
            delay: Suggested retry delay in seconds
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.delay = delay
        self.user_action = user_action
        self.cause = cause

    def as_kopf_error(self):
        """Convert to appropriate kopf exception type."""
        if self.retryable:
            return kopf.TemporaryError(str(self), delay=self.delay)
        else:
            return kopf.PermanentError(str(self))

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ValidationError(OperatorError):
    """Error in an object's specification."""

    def __init__(
        self, message: str, field: str | None = None, user_action: str | None = None
    ):
        action = user_action or "Check the object definition and fix validation errors"
        if field:
            message = f"Validation error in field '{field}': {message}"
        super().__init__(
            message=message, category="validation", retryable=False, user_action=action
        )
        self.field = field


class InvalidObjectError(ValidationError):
    """A desired object whose identity cannot be derived from its own metadata."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            field=field,
            user_action="Fix the manifest builder so it sets apiVersion, kind and metadata.name",
        )


class TemporaryError(OperatorError):
    """Temporary error that should be retried."""

    def __init__(self, message: str, delay: int = 30, user_action: str | None = None):
        super().__init__(
            message=message,
            category="temporary",
            retryable=True,
            delay=delay,
            user_action=user_action
            or "Wait for automatic retry or check system status",
        )


class ResourceConflictError(TemporaryError):
    """The store rejected a write made against a stale resource version."""

    def __init__(
        self,
        identity: "ObjectIdentity",
        operation: str = "update",
        cause: Exception | None = None,
    ):
        super().__init__(
            message=f"Conflict during {operation} of {identity}: object was modified concurrently",
            delay=CONFLICT_RETRY_DELAY,
            user_action="Re-read the object and reconcile again",
        )
        self.category = "conflict"
        self.identity = identity
        self.operation = operation
        self.cause = cause


class ExternalServiceError(OperatorError):
    """Error communicating with external services."""

    def __init__(
        self,
        service: str,
        message: str,
        retryable: bool = True,
        delay: int = 60,
        user_action: str | None = None,
    ):
        action = user_action or f"Check {service} connectivity and credentials"
        super().__init__(
            message=f"{service} error: {message}",
            category="external",
            retryable=retryable,
            delay=delay,
            user_action=action,
        )


class KubernetesAPIError(ExternalServiceError):
    """Error communicating with Kubernetes API."""

    def __init__(self, message: str, reason: str | None = None, retryable: bool = True):
        if reason:
            message = f"{message} (reason: {reason})"

        # Some K8s errors are not retryable
        non_retryable_reasons = {"Forbidden", "Unauthorized", "Invalid"}
        if reason in non_retryable_reasons:
            retryable = False

        super().__init__(
            service="Kubernetes API",
            message=message,
            retryable=retryable,
            user_action="Check RBAC permissions and cluster connectivity",
        )
        self.reason = reason

    @classmethod
    def from_api_exception(cls, exc: ApiException) -> "KubernetesAPIError":
        """
        Classify an ApiException propagated by the synchronizer.

        Server-side failures (5xx) and throttling (429) are retryable,
        everything else is not.
        """
        status = getattr(exc, "status", None)
        retryable = status is not None and (status >= 500 or status == 429)
        error = cls(
            message=f"HTTP {status}" if status else str(exc),
            reason=getattr(exc, "reason", None),
            retryable=retryable,
        )
        error.cause = exc
        return error


class ConfigurationError(OperatorError):
    """Error in synchronizer or object configuration."""

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(
            message=message,
            category="configuration",
            retryable=retryable,
            user_action=user_action or "Review and correct configuration",
        )
