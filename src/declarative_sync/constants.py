"""
Constants used throughout declarative-sync.

This module defines:
- Metadata fields assigned or mutated by the API server
- Finalizer naming rules
- Default update strategy per kind
- HTTP status codes the object store reports as outcomes
"""

# Metadata fields the API server owns. These never take part in comparison
# unless a caller re-includes them explicitly.
SERVER_MANAGED_METADATA_FIELDS = (
    "resourceVersion",
    "uid",
    "creationTimestamp",
    "generation",
    "managedFields",
    "selfLink",
    "deletionTimestamp",
    "deletionGracePeriodSeconds",
)

# Status is a subresource written by controllers, never part of desired state
STATUS_FIELD = "status"

# Finalizer naming
DEFAULT_FINALIZER_DOMAIN = "declarative-sync.io"
FINALIZER_INFIX = "finalizers"
MAX_FINALIZER_LENGTH = 63

# Kinds whose specs are mostly immutable after creation; updating them is
# done by deleting and re-creating the object.
DEFAULT_RECREATE_KINDS = ("Job", "Ingress", "Route")

# Object store status codes
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409

# Timeouts (in seconds)
DEFAULT_REQUEST_TIMEOUT = 30

# Retry delays suggested to callers (in seconds)
CONFLICT_RETRY_DELAY = 5
