"""
Service layer for declarative-sync.

This module provides the synchronizer that converges single objects and the
finalizer guard layered on top of it.
"""

from .finalizer_guard import FinalizerGuard, finalizer_name
from .synchronizer import ResourceSynchronizer

__all__ = [
    "FinalizerGuard",
    "ResourceSynchronizer",
    "finalizer_name",
]
