"""
Unit tests for ResourceSynchronizer.

Runs every primitive against the in-memory object store and checks both the
returned outcome and the calls that reached the store.
"""

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from declarative_sync.errors import (
    ConfigurationError,
    InvalidObjectError,
    ResourceConflictError,
)
from declarative_sync.models.identity import ObjectIdentity
from declarative_sync.observability.metrics import get_metrics_registry
from declarative_sync.services.synchronizer import ResourceSynchronizer
from declarative_sync.utils.comparison import ExactFields, IgnoreFields
from tests.fixtures.sync_resources import (
    OWNER,
    SCENARIO_OBJECT,
    TEST_JOB,
    TEST_SECRET,
    TEST_SECRET_LABELED,
    with_labels,
)

SECRET_KEY = ObjectIdentity.from_manifest(TEST_SECRET)


def operation_count(labels: dict[str, str]) -> float:
    registry = get_metrics_registry()
    return registry.get_sample_value("declarative_sync_operations_total", labels) or 0.0


class TestGet:
    def test_get_existing_object(self, store, synchronizer):
        store.seed(TEST_SECRET)

        actual = synchronizer.get(SECRET_KEY)

        assert actual is not None
        assert actual["metadata"]["name"] == "test-secret"
        assert actual["metadata"]["resourceVersion"]

    def test_get_missing_object_is_not_an_error(self, synchronizer):
        assert synchronizer.get(SECRET_KEY) is None

    def test_get_accepts_sample_object(self, store, synchronizer):
        store.seed(TEST_SECRET)

        assert synchronizer.get(TEST_SECRET) is not None

    def test_get_propagates_other_api_errors(self, store, synchronizer):
        error = ApiException(status=403, reason="Forbidden")
        store.fail_next("get", error)

        with pytest.raises(ApiException) as exc_info:
            synchronizer.get(SECRET_KEY)

        assert exc_info.value is error

    def test_get_propagates_transport_errors_unchanged(self, store, synchronizer):
        error = MaxRetryError(pool=None, url="/api/v1/namespaces/eclipse-che/secrets")
        store.fail_next("get", error)

        with pytest.raises(MaxRetryError) as exc_info:
            synchronizer.get(SECRET_KEY)

        assert exc_info.value is error

    def test_get_passes_default_timeout_to_store(self, store, synchronizer):
        synchronizer.get(SECRET_KEY)
        synchronizer.get(SECRET_KEY, timeout=2.5)

        assert store.timeouts == [10, 2.5]


class TestCreate:
    def test_create_new_object(self, store, synchronizer):
        assert synchronizer.create(TEST_SECRET) is True
        assert store.peek(SECRET_KEY) is not None

    def test_create_existing_object_is_benign(self, store, synchronizer):
        store.seed(TEST_SECRET)

        assert synchronizer.create(TEST_SECRET) is False
        assert len(store.calls_to("create")) == 1

    def test_create_propagates_other_errors(self, store, synchronizer):
        store.fail_next("create", ApiException(status=422, reason="Unprocessable Entity"))

        with pytest.raises(ApiException) as exc_info:
            synchronizer.create(TEST_SECRET)

        assert exc_info.value.status == 422

    def test_create_does_not_mutate_desired(self, synchronizer, owner):
        desired = with_labels(TEST_SECRET, app="che")
        snapshot = with_labels(TEST_SECRET, app="che")

        ResourceSynchronizer(synchronizer.store, owner=owner).create(desired)

        assert desired == snapshot

    def test_create_sets_owner_reference(self, store, owned_synchronizer, owner):
        owned_synchronizer.create(TEST_SECRET)

        references = store.peek(SECRET_KEY)["metadata"]["ownerReferences"]
        assert references == [
            {
                "apiVersion": "org.eclipse.che/v1",
                "kind": "CheCluster",
                "name": "eclipse-che",
                "uid": owner["metadata"]["uid"],
                "controller": True,
                "blockOwnerDeletion": True,
            }
        ]

    def test_create_accepts_typed_model(self, store, synchronizer):
        secret = client.V1Secret(
            api_version="v1",
            kind="Secret",
            metadata=client.V1ObjectMeta(name="test-secret", namespace="eclipse-che"),
            string_data={"token": "abc"},
        )

        assert synchronizer.create(secret) is True
        assert store.peek(SECRET_KEY)["stringData"] == {"token": "abc"}

    def test_malformed_object_fails_before_store_call(self, store, synchronizer):
        with pytest.raises(InvalidObjectError):
            synchronizer.create({"apiVersion": "v1", "kind": "Secret", "metadata": {}})

        assert store.calls == []


class TestCreateIfNotExists:
    def test_creates_missing_object(self, store, synchronizer):
        assert synchronizer.create_if_not_exists(TEST_SECRET) is True
        assert store.peek(SECRET_KEY) is not None

    def test_existing_object_issues_no_write(self, store, synchronizer):
        store.seed(TEST_SECRET)

        assert synchronizer.create_if_not_exists(TEST_SECRET) is True
        assert store.writes == []

    def test_twice_creates_exactly_once(self, store, synchronizer):
        first = synchronizer.create_if_not_exists(TEST_SECRET)
        second = synchronizer.create_if_not_exists(TEST_SECRET)

        assert first is True
        assert second is True
        assert len(store.calls_to("create")) == 1

    def test_existing_object_is_not_changed(self, store, synchronizer):
        store.seed(TEST_SECRET)

        synchronizer.create_if_not_exists(TEST_SECRET_LABELED)

        assert "labels" not in store.peek(SECRET_KEY)["metadata"]


class TestUpdate:
    def test_update_applies_difference(self, store, synchronizer):
        store.seed(TEST_SECRET)
        actual = store.peek(SECRET_KEY)

        assert synchronizer.update(actual, TEST_SECRET_LABELED) is True
        assert store.peek(SECRET_KEY)["metadata"]["labels"] == {"a": "b"}

    def test_update_without_difference_issues_no_write(self, store, synchronizer):
        store.seed(TEST_SECRET_LABELED)
        actual = store.peek(SECRET_KEY)

        assert synchronizer.update(actual, TEST_SECRET_LABELED) is False
        assert store.writes == []

    def test_update_preserves_server_managed_metadata(self, store, synchronizer):
        store.seed(TEST_SECRET)
        actual = store.peek(SECRET_KEY)

        synchronizer.update(actual, TEST_SECRET_LABELED)

        stored = store.peek(SECRET_KEY)
        assert stored["metadata"]["uid"] == actual["metadata"]["uid"]
        assert stored["metadata"]["resourceVersion"] != actual["metadata"]["resourceVersion"]

    def test_update_keeps_fields_only_present_on_actual(self, store, synchronizer):
        store.seed({**TEST_SECRET, "type": "Opaque", "data": {"k": "dg=="}})
        actual = store.peek(SECRET_KEY)

        synchronizer.update(actual, TEST_SECRET_LABELED)

        stored = store.peek(SECRET_KEY)
        assert stored["type"] == "Opaque"
        assert stored["data"] == {"k": "dg=="}

    def test_stale_update_raises_conflict(self, store, synchronizer):
        store.seed(TEST_SECRET)
        stale = store.peek(SECRET_KEY)
        # Another actor writes in between our read and our write
        store.seed(with_labels(TEST_SECRET, owner="someone-else"))

        with pytest.raises(ResourceConflictError) as exc_info:
            synchronizer.update(stale, TEST_SECRET_LABELED)

        assert exc_info.value.retryable is True
        assert exc_info.value.identity == SECRET_KEY
        assert isinstance(exc_info.value.__cause__, ApiException)
        assert store.peek(SECRET_KEY)["metadata"]["labels"] == {"owner": "someone-else"}

    def test_update_with_ignore_rule_skips_field(self, store, synchronizer):
        store.seed(TEST_SECRET)
        actual = store.peek(SECRET_KEY)

        updated = synchronizer.update(
            actual, TEST_SECRET_LABELED, [IgnoreFields("metadata.labels")]
        )

        assert updated is False
        assert store.writes == []

    def test_update_with_exact_rule_removes_extra_labels(self, store, synchronizer):
        store.seed(with_labels(TEST_SECRET, a="b", stale="yes"))
        actual = store.peek(SECRET_KEY)
        rules = [ExactFields("metadata.labels")]

        assert synchronizer.update(actual, TEST_SECRET_LABELED, rules) is True
        assert store.peek(SECRET_KEY)["metadata"]["labels"] == {"a": "b"}
        assert synchronizer.sync(TEST_SECRET_LABELED, rules) is True

    def test_update_recreates_configured_kinds(self, store, synchronizer):
        store.seed(TEST_JOB)
        actual = store.peek(ObjectIdentity.from_manifest(TEST_JOB))
        desired = {
            **TEST_JOB,
            "spec": {
                "template": {
                    "spec": {
                        "restartPolicy": "Never",
                        "containers": [{"name": "migrate", "image": "migrate:2"}],
                    }
                }
            },
        }

        assert synchronizer.update(actual, desired) is True

        assert [op for op, _ in store.writes] == ["delete", "create"]
        recreated = store.peek(ObjectIdentity.from_manifest(TEST_JOB))
        assert recreated["spec"]["template"]["spec"]["containers"][0]["image"] == "migrate:2"
        assert recreated["metadata"]["uid"] != actual["metadata"]["uid"]

    def test_stale_recreate_raises_conflict(self, store, synchronizer):
        job_key = ObjectIdentity.from_manifest(TEST_JOB)
        store.seed(TEST_JOB)
        stale = store.peek(job_key)
        # Another actor writes in between our read and the delete
        store.seed(with_labels(TEST_JOB, touched="by-other-actor"))
        desired = with_labels(TEST_JOB, app="migrate")

        with pytest.raises(ResourceConflictError) as exc_info:
            synchronizer.update(stale, desired)

        assert exc_info.value.identity == job_key
        assert store.peek(job_key)["metadata"]["labels"] == {"touched": "by-other-actor"}
        assert store.calls_to("create") == []

    def test_recreate_of_terminating_object_is_pending(self, store, synchronizer):
        job_key = ObjectIdentity.from_manifest(TEST_JOB)
        store.seed(
            {**TEST_JOB, "metadata": {**TEST_JOB["metadata"], "finalizers": ["other/cleanup"]}}
        )
        actual = store.peek(job_key)
        labels = {"operation": "update", "kind": "Job", "result": "recreate_pending"}
        before = operation_count(labels)

        assert synchronizer.update(actual, with_labels(TEST_JOB, app="migrate")) is True

        assert [op for op, _ in store.writes] == ["delete", "create"]
        assert store.peek(job_key)["metadata"]["deletionTimestamp"]
        assert operation_count(labels) == before + 1


class TestDelete:
    def test_delete_existing_object(self, store, synchronizer):
        store.seed(TEST_SECRET)

        assert synchronizer.delete(SECRET_KEY) is True
        assert store.peek(SECRET_KEY) is None

    def test_delete_missing_object(self, synchronizer):
        assert synchronizer.delete(SECRET_KEY) is True

    def test_delete_twice(self, store, synchronizer):
        store.seed(TEST_SECRET)

        assert synchronizer.delete(TEST_SECRET) is True
        assert synchronizer.delete(TEST_SECRET) is True

    def test_delete_terminating_object_counts_as_deleted(self, store, synchronizer):
        store.seed(
            {
                **TEST_SECRET,
                "metadata": {**TEST_SECRET["metadata"], "finalizers": ["other/cleanup"]},
            }
        )

        assert synchronizer.delete(SECRET_KEY) is True
        assert store.peek(SECRET_KEY)["metadata"]["deletionTimestamp"]
        assert synchronizer.delete(SECRET_KEY) is True

    def test_delete_propagates_other_errors(self, store, synchronizer):
        store.fail_next("delete", ApiException(status=500, reason="Internal Server Error"))

        with pytest.raises(ApiException):
            synchronizer.delete(SECRET_KEY)

    def test_delete_of_changed_version_raises_conflict(self, store, synchronizer):
        store.seed(TEST_SECRET)
        stale = store.peek(SECRET_KEY)["metadata"]["resourceVersion"]
        store.seed(TEST_SECRET_LABELED)

        with pytest.raises(ResourceConflictError):
            synchronizer.delete(SECRET_KEY, resource_version=stale)

        assert store.peek(SECRET_KEY) is not None

    def test_delete_of_current_version(self, store, synchronizer):
        current = store.seed(TEST_SECRET)["metadata"]["resourceVersion"]

        assert synchronizer.delete(SECRET_KEY, resource_version=current) is True
        assert store.peek(SECRET_KEY) is None


class TestSync:
    def test_sync_updates_then_converges(self, store, synchronizer):
        store.seed(TEST_SECRET)

        synchronizer.sync(TEST_SECRET_LABELED)
        done = synchronizer.sync(TEST_SECRET_LABELED)

        assert done is True
        assert store.peek(SECRET_KEY)["metadata"]["labels"] == {"a": "b"}

    def test_sync_scenario(self, store, synchronizer):
        identity = ObjectIdentity.from_manifest(SCENARIO_OBJECT)

        # Absent: one create, needs another pass
        assert synchronizer.sync(SCENARIO_OBJECT) is False
        assert store.calls_to("create") == [identity]

        # Present and equal: converged, no writes
        writes_before = len(store.writes)
        assert synchronizer.sync(SCENARIO_OBJECT) is True
        assert len(store.writes) == writes_before

        # Changed labels: one update, then converged
        changed = with_labels(SCENARIO_OBJECT, a="b")
        assert synchronizer.sync(changed) is False
        assert store.calls_to("update") == [identity]
        assert synchronizer.sync(changed) is True

    def test_sync_stays_converged(self, store, synchronizer):
        synchronizer.sync(TEST_SECRET_LABELED)

        outcomes = [synchronizer.sync(TEST_SECRET_LABELED) for _ in range(3)]

        assert outcomes == [True, True, True]
        assert len(store.writes) == 1

    def test_sync_corrects_external_drift(self, store, synchronizer):
        synchronizer.sync(TEST_SECRET_LABELED)
        store.seed(with_labels(TEST_SECRET, a="changed-by-user"))

        assert synchronizer.sync(TEST_SECRET_LABELED) is False
        assert store.peek(SECRET_KEY)["metadata"]["labels"] == {"a": "b"}
        assert synchronizer.sync(TEST_SECRET_LABELED) is True

    def test_sync_reads_fresh_state_every_call(self, store, synchronizer):
        synchronizer.sync(TEST_SECRET)
        synchronizer.sync(TEST_SECRET)

        assert len(store.calls_to("get")) == 2

    def test_sync_propagates_conflict(self, store, synchronizer):
        store.seed(TEST_SECRET)
        store.fail_next("update", ApiException(status=409, reason="Conflict"))

        with pytest.raises(ResourceConflictError):
            synchronizer.sync(TEST_SECRET_LABELED)

    def test_sync_lost_create_race_needs_another_pass(self, store, synchronizer):
        store.fail_next("get", ApiException(status=404, reason="Not Found"))
        store.seed(TEST_SECRET)

        assert synchronizer.sync(TEST_SECRET) is False
        assert synchronizer.sync(TEST_SECRET) is True

    def test_sync_rejects_object_without_identity(self, store, synchronizer):
        with pytest.raises(InvalidObjectError) as exc_info:
            synchronizer.sync({"kind": "Secret", "metadata": {"name": "x"}})

        assert exc_info.value.field == "apiVersion"
        assert store.calls == []


class TestConstruction:
    def test_non_positive_timeout_is_rejected(self, store):
        with pytest.raises(ConfigurationError):
            ResourceSynchronizer(store, timeout=0)

    def test_defaults_come_from_settings(self, store):
        sync = ResourceSynchronizer(store)

        assert sync.timeout == 30
        assert sync.recreate_kinds == frozenset({"Job", "Ingress", "Route"})

    def test_owner_is_copied(self, store):
        owner = {**OWNER, "metadata": dict(OWNER["metadata"])}
        sync = ResourceSynchronizer(store, owner=owner)

        owner["metadata"]["name"] = "changed"

        assert sync.owner["metadata"]["name"] == "eclipse-che"
