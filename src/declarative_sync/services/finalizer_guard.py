"""
Finalizer guard: ties a dependent object's lifecycle to its owner.

A finalizer token on the owning custom resource keeps the API server from
removing the owner until the cleanup that owns the token has run. The guard
adds the token while dependents are synced and removes it once they are
deleted. Membership is set-like: a token is never listed twice.
"""

import copy
import re
from collections.abc import Mapping, Sequence
from typing import Any

from ..constants import FINALIZER_INFIX, MAX_FINALIZER_LENGTH
from ..errors import ConfigurationError
from ..models.identity import Manifest, ObjectIdentity
from ..settings import settings
from ..utils.comparison import Rule
from ..utils.kubernetes import get_finalizers, is_terminating
from .synchronizer import ResourceSynchronizer

# Names must end in an alphanumeric character
_TRAILING_SEPARATORS = re.compile(r"[^A-Za-z0-9]+$")


def finalizer_name(prefix: str, domain: str | None = None) -> str:
    """
    Build a finalizer token such as ``tls-secret.finalizers.declarative-sync.io``.

    Tokens longer than the 63 characters the API server accepts are cut
    from the end, dropping any separators left dangling by the cut.
    """
    token = f"{prefix}.{FINALIZER_INFIX}.{domain or settings.finalizer_domain}"
    return _TRAILING_SEPARATORS.sub("", token[:MAX_FINALIZER_LENGTH])


class FinalizerGuard:
    """Manages finalizer tokens on the synchronizer's owning resource."""

    def __init__(self, synchronizer: ResourceSynchronizer):
        self.synchronizer = synchronizer

    @property
    def owner(self) -> Manifest:
        owner = self.synchronizer.owner
        if owner is None:
            raise ConfigurationError(
                "Finalizers require a synchronizer created with an owner resource"
            )
        return owner

    def sync_and_add_finalizer(
        self,
        desired: Mapping[str, Any] | Any,
        rules: Sequence[Rule],
        token: str,
        timeout: float | None = None,
    ) -> bool:
        """
        Sync a dependent object and make sure the owner carries ``token``.

        Nothing is synced while the owner is being deleted: a terminating
        object must not gain finalizers.

        Args:
            desired: Desired state of the dependent object
            rules: Comparison rules for its kind
            token: Finalizer token to hold on the owner
            timeout: Deadline override for each store call

        Returns:
            The ``sync`` outcome; the finalizer write does not change it
        """
        if is_terminating(self.owner):
            self.synchronizer.logger.debug(
                f"Owner is terminating, skipping sync guarded by {token}",
                finalizer=token,
            )
            return True

        done = self.synchronizer.sync(desired, rules, timeout)
        self.add_finalizer(token, timeout)
        return done

    def add_finalizer(self, token: str, timeout: float | None = None) -> bool:
        """
        Add ``token`` to the owner's finalizers unless already present.

        Returns:
            True if the owner was written

        Raises:
            ResourceConflictError: If the owner changed since it was read
        """
        finalizers = get_finalizers(self.owner)
        if token in finalizers:
            return False

        self._write_finalizers([*finalizers, token], "add_finalizer", token, timeout)
        return True

    def remove_finalizer(self, token: str, timeout: float | None = None) -> bool:
        """
        Remove ``token`` from the owner's finalizers if present.

        Returns:
            True if the owner was written

        Raises:
            ResourceConflictError: If the owner changed since it was read
        """
        finalizers = get_finalizers(self.owner)
        if token not in finalizers:
            return False

        remaining = [finalizer for finalizer in finalizers if finalizer != token]
        self._write_finalizers(remaining, "remove_finalizer", token, timeout)
        return True

    def delete_with_finalizer(
        self,
        target: ObjectIdentity | Mapping[str, Any] | Any,
        token: str,
        timeout: float | None = None,
    ) -> bool:
        """
        Delete a dependent object, then release the owner's ``token``.

        Returns:
            True once the object is deleted and the token released
        """
        self.synchronizer.delete(target, timeout)
        self.remove_finalizer(token, timeout)
        return True

    def _write_finalizers(
        self,
        finalizers: list[str],
        operation: str,
        token: str,
        timeout: float | None,
    ) -> None:
        body = copy.deepcopy(self.owner)
        body.setdefault("metadata", {})["finalizers"] = finalizers

        stored = self.synchronizer.replace(body, timeout)
        # Keep the fresh resourceVersion for the next write in this pass
        self.synchronizer.owner = stored

        identity = ObjectIdentity.from_manifest(body)
        self.synchronizer.logger.log_sync_operation(
            operation=operation,
            kind=identity.kind,
            resource_name=identity.name,
            namespace=identity.namespace,
            outcome="written",
            finalizer=token,
        )
