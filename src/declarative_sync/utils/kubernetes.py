"""
Kubernetes utilities for declarative-sync.

This module provides helper functions for interacting with the Kubernetes API.

Key functionality:
- Kubernetes client management and configuration
- Normalizing typed client models into JSON manifests
- Owner references for garbage collection
- Classifying ApiException statuses
"""

import copy
import logging
from collections.abc import Mapping
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..constants import HTTP_CONFLICT, HTTP_NOT_FOUND
from ..errors import InvalidObjectError
from ..models.identity import Manifest

logger = logging.getLogger(__name__)

# Shared serializer; sanitize_for_serialization does not touch the network
_serializer = client.ApiClient()


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    Tries in-cluster configuration first and falls back to the local
    kubeconfig for development.

    Returns:
        Configured Kubernetes API client
    """
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


def to_manifest(obj: Any) -> Manifest:
    """
    Return a deep copy of an object in JSON manifest form.

    Accepts plain mappings as well as typed models from ``kubernetes.client``
    (``V1Secret``, ``V1Deployment``, ...). The input is never mutated.

    Raises:
        InvalidObjectError: If the object cannot be represented as a mapping
    """
    if isinstance(obj, Mapping):
        return copy.deepcopy(dict(obj))

    if hasattr(obj, "openapi_types"):
        manifest = _serializer.sanitize_for_serialization(obj)
        if isinstance(manifest, dict):
            return manifest

    raise InvalidObjectError(
        f"Cannot convert {type(obj).__name__} into a Kubernetes manifest"
    )


def set_owner_reference(manifest: Manifest, owner: Mapping[str, Any]) -> bool:
    """
    Set a controller owner reference for garbage collection.

    The reference is only set when the owner can legally own the object:
    the owner has a uid and, when the owner is namespaced, the object lives
    in the same namespace. An existing reference to the same owner is left alone.

    Args:
        manifest: Object to mutate
        owner: Owning resource in manifest form

    Returns:
        True if the reference is present after the call
    """
    owner_meta = owner.get("metadata") or {}
    owner_uid = owner_meta.get("uid")
    if not owner_uid:
        return False

    metadata = manifest.setdefault("metadata", {})
    owner_namespace = owner_meta.get("namespace")
    if owner_namespace and metadata.get("namespace") != owner_namespace:
        return False

    references = metadata.get("ownerReferences") or []
    if any(ref.get("uid") == owner_uid for ref in references):
        return True
    # Only one controller reference is allowed per object
    if any(ref.get("controller") for ref in references):
        return False

    references.append(
        {
            "apiVersion": owner.get("apiVersion"),
            "kind": owner.get("kind"),
            "name": owner_meta.get("name"),
            "uid": owner_uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }
    )
    metadata["ownerReferences"] = references
    return True


def is_not_found(error: ApiException) -> bool:
    return getattr(error, "status", None) == HTTP_NOT_FOUND


def is_conflict(error: ApiException) -> bool:
    """409: already exists on create, stale resource version on update."""
    return getattr(error, "status", None) == HTTP_CONFLICT


def is_terminating(manifest: Mapping[str, Any] | None) -> bool:
    """Check whether an object has been marked for deletion."""
    if not manifest:
        return False
    return bool((manifest.get("metadata") or {}).get("deletionTimestamp"))


def get_finalizers(manifest: Mapping[str, Any]) -> list[str]:
    return list((manifest.get("metadata") or {}).get("finalizers") or [])
