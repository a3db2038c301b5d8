"""
Test fixtures for synchronizer resources.

This module provides sample manifests used across the unit tests: a plain
Secret in a few states, an owning custom resource, and a Job.
"""

import copy
from typing import Any

TEST_NAMESPACE = "eclipse-che"

TEST_SECRET = {
    "apiVersion": "v1",
    "kind": "Secret",
    "metadata": {"name": "test-secret", "namespace": TEST_NAMESPACE},
}

TEST_SECRET_LABELED = {
    "apiVersion": "v1",
    "kind": "Secret",
    "metadata": {
        "name": "test-secret",
        "namespace": TEST_NAMESPACE,
        "labels": {"a": "b"},
    },
}

SCENARIO_OBJECT = {
    "apiVersion": "v1",
    "kind": "ConfigMap",
    "metadata": {"name": "x", "namespace": "ns", "labels": {}},
}

OWNER = {
    "apiVersion": "org.eclipse.che/v1",
    "kind": "CheCluster",
    "metadata": {
        "name": "eclipse-che",
        "namespace": TEST_NAMESPACE,
        "uid": "0f6b1d9e-6d9b-4a36-9e53-3c1f0f3c2f11",
    },
    "spec": {"server": {"cheFlavor": "che"}},
}

TEST_JOB = {
    "apiVersion": "batch/v1",
    "kind": "Job",
    "metadata": {"name": "migrate", "namespace": TEST_NAMESPACE},
    "spec": {
        "template": {
            "spec": {
                "restartPolicy": "Never",
                "containers": [{"name": "migrate", "image": "migrate:1"}],
            }
        }
    },
}


def with_labels(manifest: dict[str, Any], **labels: str) -> dict[str, Any]:
    """Return a copy of ``manifest`` with ``labels`` as its labels."""
    result = copy.deepcopy(manifest)
    result["metadata"]["labels"] = dict(labels)
    return result
