"""
declarative-sync - level-triggered synchronization of Kubernetes objects.

This package provides the reconciliation primitives operators build on:
- Fetching, creating, updating and deleting objects by identity
- Rule-driven comparison of desired and actual state
- Finalizer management on an owning custom resource
"""

from .models.identity import ObjectIdentity
from .services.finalizer_guard import FinalizerGuard
from .services.synchronizer import ResourceSynchronizer
from .utils.comparison import (
    EqualWhen,
    ExactFields,
    IgnoreFields,
    IncludeFields,
    diff_paths,
    semantically_equal,
)
from .utils.object_store import KubernetesObjectStore, ObjectStore

__version__ = "0.1.0"

__all__ = [
    "EqualWhen",
    "ExactFields",
    "FinalizerGuard",
    "IgnoreFields",
    "IncludeFields",
    "KubernetesObjectStore",
    "ObjectIdentity",
    "ObjectStore",
    "ResourceSynchronizer",
    "diff_paths",
    "semantically_equal",
]
