"""
Resource synchronizer: level-triggered convergence of a single object.

The synchronizer composes an object store with the comparison rules into the
primitives every reconciler is built on: get, create, create-if-absent,
update, delete and sync.

Outcomes are plain booleans. ``sync`` returns True only when the actual
object already satisfies the desired one; False means a write was just
issued and the caller should reconcile again to confirm it landed. Not-found
on get/delete and already-exists on create are outcomes, not errors. A stale
write raises ``ResourceConflictError``; every other store failure propagates
unchanged. Nothing is retried internally and nothing is cached between calls.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from kubernetes.client.rest import ApiException

from ..errors import ConfigurationError, ResourceConflictError
from ..models.identity import Manifest, ObjectIdentity
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector
from ..settings import settings
from ..utils.comparison import Rule, diff_paths, merge_desired
from ..utils.kubernetes import (
    is_conflict,
    is_not_found,
    set_owner_reference,
    to_manifest,
)
from ..utils.object_store import ObjectStore


class ResourceSynchronizer:
    """
    Drives objects in the store toward their desired state.

    Holds no state about the objects it manages. The optional ``owner`` is the
    custom resource the managed objects belong to; when set, created objects
    get a controller owner reference to it and ``FinalizerGuard`` manages its
    finalizers.
    """

    def __init__(
        self,
        store: ObjectStore,
        owner: Mapping[str, Any] | Any | None = None,
        timeout: float | None = None,
        recreate_kinds: Iterable[str] | None = None,
    ):
        """
        Initialize the synchronizer.

        Args:
            store: Object store to read from and write to
            owner: Owning resource (manifest or typed model), optional
            timeout: Default deadline in seconds for each store call
            recreate_kinds: Kinds updated by delete and re-create instead of
                an in-place write; defaults to the configured set
        """
        self.store = store
        self.owner: Manifest | None = to_manifest(owner) if owner is not None else None
        self.timeout = settings.request_timeout_seconds if timeout is None else timeout
        if self.timeout <= 0:
            raise ConfigurationError(
                f"Store call timeout must be positive, got {self.timeout}"
            )
        self.recreate_kinds = (
            settings.recreate_kind_set
            if recreate_kinds is None
            else frozenset(recreate_kinds)
        )
        self.logger = OperatorLogger(__name__)

    @staticmethod
    def identity_of(target: ObjectIdentity | Mapping[str, Any] | Any) -> ObjectIdentity:
        """Derive the identity of a manifest or typed model, or pass one through."""
        if isinstance(target, ObjectIdentity):
            return target
        return ObjectIdentity.from_manifest(to_manifest(target))

    def _call_store(
        self,
        operation: str,
        identity: ObjectIdentity,
        method: Callable[..., Any],
        payload: ObjectIdentity | Manifest,
        timeout: float | None,
        **kwargs: Any,
    ) -> Any:
        with metrics_collector.track_store_call(operation, identity.kind):
            return method(
                payload, timeout=self.timeout if timeout is None else timeout, **kwargs
            )

    def _record(self, operation: str, identity: ObjectIdentity, outcome: str, **fields):
        metrics_collector.record_outcome(operation, identity.kind, outcome)
        self.logger.log_sync_operation(
            operation=operation,
            kind=identity.kind,
            resource_name=identity.name,
            namespace=identity.namespace,
            outcome=outcome,
            **fields,
        )

    def get(
        self,
        target: ObjectIdentity | Mapping[str, Any] | Any,
        timeout: float | None = None,
    ) -> Manifest | None:
        """
        Read the current state of an object.

        Args:
            target: Identity, or a sample object to derive it from
            timeout: Deadline override for this call

        Returns:
            The object as stored, or None if it does not exist
        """
        identity = self.identity_of(target)
        try:
            actual = self._call_store("get", identity, self.store.get, identity, timeout)
        except ApiException as e:
            if is_not_found(e):
                self._record("get", identity, "absent")
                return None
            raise

        self._record("get", identity, "present")
        return actual

    def create(self, desired: Mapping[str, Any] | Any, timeout: float | None = None) -> bool:
        """
        Create an object.

        Returns:
            True if the object was created, False if it already existed
        """
        manifest = to_manifest(desired)
        identity = ObjectIdentity.from_manifest(manifest)
        if self.owner is not None:
            set_owner_reference(manifest, self.owner)

        try:
            self._call_store("create", identity, self.store.create, manifest, timeout)
        except ApiException as e:
            # Another actor created the same identity first
            if is_conflict(e):
                self._record("create", identity, "exists")
                return False
            raise

        self._record("create", identity, "created")
        return True

    def create_if_not_exists(
        self, desired: Mapping[str, Any] | Any, timeout: float | None = None
    ) -> bool:
        """
        Create an object unless it is already present.

        Issues no write when the object exists and at most one create
        otherwise.

        Returns:
            True if the object exists (before or after the call)
        """
        manifest = to_manifest(desired)
        identity = ObjectIdentity.from_manifest(manifest)

        if self.get(identity, timeout) is not None:
            self._record("create_if_not_exists", identity, "exists")
            return True
        return self.create(manifest, timeout)

    def replace(self, manifest: Mapping[str, Any], timeout: float | None = None) -> Manifest:
        """
        Write a full object, checked against its resourceVersion.

        Returns:
            The object as stored after the write

        Raises:
            ResourceConflictError: If the object changed since it was read
        """
        body = to_manifest(manifest)
        identity = ObjectIdentity.from_manifest(body)
        try:
            return self._call_store("update", identity, self.store.update, body, timeout)
        except ApiException as e:
            if is_conflict(e):
                raise ResourceConflictError(identity, "update", cause=e) from e
            raise

    def update(
        self,
        actual: Mapping[str, Any] | Any,
        desired: Mapping[str, Any] | Any,
        rules: Sequence[Rule] = (),
        timeout: float | None = None,
    ) -> bool:
        """
        Bring an existing object in line with the desired state.

        Args:
            actual: Object as read from the store
            desired: Desired state
            rules: Comparison rules for this kind
            timeout: Deadline override for this call

        Returns:
            True if a write was issued, False if nothing differed

        Raises:
            ResourceConflictError: If the object changed since it was read
        """
        actual_manifest = to_manifest(actual)
        desired_manifest = to_manifest(desired)
        identity = ObjectIdentity.from_manifest(desired_manifest)

        differences = diff_paths(actual_manifest, desired_manifest, rules)
        if not differences:
            self._record("update", identity, "unchanged")
            return False

        if identity.kind in self.recreate_kinds:
            version = (actual_manifest.get("metadata") or {}).get("resourceVersion")
            self.delete(identity, timeout, resource_version=version)
            # Still terminating behind a finalizer: the next pass creates it
            created = self.create(desired_manifest, timeout)
            outcome = "recreated" if created else "recreate_pending"
            self._record("update", identity, outcome, diff=differences)
            return True

        body = merge_desired(actual_manifest, desired_manifest, rules)
        if self.owner is not None:
            set_owner_reference(body, self.owner)
        self.replace(body, timeout)
        self._record("update", identity, "updated", diff=differences)
        return True

    def delete(
        self,
        target: ObjectIdentity | Mapping[str, Any] | Any,
        timeout: float | None = None,
        resource_version: str | None = None,
    ) -> bool:
        """
        Delete an object.

        An object that is already gone, or still terminating behind another
        controller's finalizer, counts as deleted.

        Args:
            target: Identity, or a sample object to derive it from
            timeout: Deadline override for this call
            resource_version: Only delete this version of the object

        Returns:
            True once the deletion has been requested or was not needed

        Raises:
            ResourceConflictError: If the object no longer has ``resource_version``
        """
        identity = self.identity_of(target)
        precondition = {"resource_version": resource_version} if resource_version else {}
        try:
            self._call_store(
                "delete", identity, self.store.delete, identity, timeout, **precondition
            )
        except ApiException as e:
            if is_not_found(e):
                self._record("delete", identity, "absent")
                return True
            if resource_version and is_conflict(e):
                raise ResourceConflictError(identity, "delete", cause=e) from e
            raise

        self._record("delete", identity, "deleted")
        return True

    def sync(
        self,
        desired: Mapping[str, Any] | Any,
        rules: Sequence[Rule] = (),
        timeout: float | None = None,
    ) -> bool:
        """
        Run one convergence step for the desired object.

        Creates the object when absent and updates it when it differs.

        Args:
            desired: Desired state
            rules: Comparison rules for this kind
            timeout: Deadline override for each store call

        Returns:
            True if the object already matched, False if a write was issued
            and another pass is needed to confirm it
        """
        manifest = to_manifest(desired)
        identity = ObjectIdentity.from_manifest(manifest)

        actual = self.get(identity, timeout)
        if actual is None:
            self.create(manifest, timeout)
            self._record("sync", identity, "pending")
            return False

        if self.update(actual, manifest, rules, timeout):
            self._record("sync", identity, "pending")
            return False

        self._record("sync", identity, "converged")
        return True
