"""
Object store access for declarative-sync.

The synchronizer talks to the cluster through four primitives only: get,
create, update and delete of a single object. This module defines that
contract and implements it on top of the Kubernetes dynamic client.

Failures are reported the way the API server reports them, as
``ApiException`` with status 404 (not found) or 409 (already exists on
create, stale resource version on update or on a preconditioned delete).
Transport errors from urllib3 are passed through untouched.
"""

from typing import Protocol

from kubernetes import client
from kubernetes.dynamic import DynamicClient

from ..models.identity import Manifest, ObjectIdentity


class ObjectStore(Protocol):
    """Protocol for the object store consumed by the synchronizer."""

    def get(self, identity: ObjectIdentity, timeout: float | None = None) -> Manifest:
        """Read an object; ApiException(404) when absent."""
        ...

    def create(self, manifest: Manifest, timeout: float | None = None) -> Manifest:
        """Create an object; ApiException(409) when the identity is taken."""
        ...

    def update(self, manifest: Manifest, timeout: float | None = None) -> Manifest:
        """Replace an object; ApiException(409) when resourceVersion is stale."""
        ...

    def delete(
        self,
        identity: ObjectIdentity,
        timeout: float | None = None,
        resource_version: str | None = None,
    ) -> None:
        """Delete an object; ApiException(404) when absent.

        With ``resource_version`` set the delete only applies to that version;
        ApiException(409) otherwise.
        """
        ...


class KubernetesObjectStore:
    """
    Object store backed by the Kubernetes dynamic client.

    Resources are resolved through API discovery from the apiVersion and kind
    of each identity, so any built-in or custom kind is supported.
    """

    def __init__(self, k8s_client: client.ApiClient | None = None):
        """
        Initialize the store.

        Args:
            k8s_client: Kubernetes API client, will be created if not provided
        """
        self.k8s_client = k8s_client
        self._dynamic_client: DynamicClient | None = None

    @property
    def dynamic_client(self) -> DynamicClient:
        """Get or create the dynamic client (runs API discovery on first use)."""
        if self._dynamic_client is None:
            if self.k8s_client is None:
                from .kubernetes import get_kubernetes_client

                self.k8s_client = get_kubernetes_client()
            self._dynamic_client = DynamicClient(self.k8s_client)
        return self._dynamic_client

    def _resource(self, identity: ObjectIdentity):
        return self.dynamic_client.resources.get(
            api_version=identity.api_version, kind=identity.kind
        )

    def get(self, identity: ObjectIdentity, timeout: float | None = None) -> Manifest:
        result = self.dynamic_client.get(
            self._resource(identity),
            name=identity.name,
            namespace=identity.namespace,
            _request_timeout=timeout,
        )
        return result.to_dict()

    def create(self, manifest: Manifest, timeout: float | None = None) -> Manifest:
        identity = ObjectIdentity.from_manifest(manifest)
        result = self.dynamic_client.create(
            self._resource(identity),
            body=manifest,
            namespace=identity.namespace,
            _request_timeout=timeout,
        )
        return result.to_dict()

    def update(self, manifest: Manifest, timeout: float | None = None) -> Manifest:
        identity = ObjectIdentity.from_manifest(manifest)
        result = self.dynamic_client.replace(
            self._resource(identity),
            body=manifest,
            name=identity.name,
            namespace=identity.namespace,
            _request_timeout=timeout,
        )
        return result.to_dict()

    def delete(
        self,
        identity: ObjectIdentity,
        timeout: float | None = None,
        resource_version: str | None = None,
    ) -> None:
        body = None
        if resource_version:
            body = {"preconditions": {"resourceVersion": resource_version}}
        self.dynamic_client.delete(
            self._resource(identity),
            name=identity.name,
            namespace=identity.namespace,
            body=body,
            _request_timeout=timeout,
        )
