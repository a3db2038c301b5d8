"""
Data models for declarative-sync.

This package contains the pydantic models shared by the synchronizer and the
object store.
"""

from .identity import Manifest, ManifestBuilder, ObjectIdentity

__all__ = ["Manifest", "ManifestBuilder", "ObjectIdentity"]
