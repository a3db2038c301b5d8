"""
Object identity model.

An identity addresses exactly one object in the cluster. It is always derived
from the object's own metadata; the synchronizer never invents one.
"""

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidObjectError

# A Kubernetes object in its JSON form (camelCase keys)
Manifest = dict[str, Any]

# Pure function producing a desired manifest from a custom resource's configuration
ManifestBuilder = Callable[[Any], Manifest]


class ObjectIdentity(BaseModel):
    """Kind, namespace and name of one object, plus the apiVersion used to reach it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_version: str = Field(..., alias="apiVersion", description="API group/version")
    kind: str = Field(..., description="Object kind")
    name: str = Field(..., description="Object name")
    namespace: str | None = Field(
        None, description="Namespace, None for cluster-scoped objects"
    )

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any]) -> "ObjectIdentity":
        """
        Derive the identity of a manifest.

        Args:
            manifest: Object in JSON form

        Returns:
            Identity of the object

        Raises:
            InvalidObjectError: If apiVersion, kind or metadata.name is missing
        """
        if not isinstance(manifest, Mapping):
            raise InvalidObjectError(
                f"Expected a manifest mapping, got {type(manifest).__name__}"
            )

        metadata = manifest.get("metadata") or {}
        api_version = manifest.get("apiVersion")
        kind = manifest.get("kind")
        name = metadata.get("name")

        for field, value in (
            ("apiVersion", api_version),
            ("kind", kind),
            ("metadata.name", name),
        ):
            if not value or not isinstance(value, str):
                raise InvalidObjectError("Object identity is incomplete", field=field)

        return cls(
            api_version=api_version,
            kind=kind,
            name=name,
            namespace=metadata.get("namespace") or None,
        )

    @property
    def namespaced(self) -> bool:
        return self.namespace is not None

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name}"
        return f"{self.kind} {self.name}"
