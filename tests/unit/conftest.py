"""Shared pytest fixtures for synchronizer tests."""

import pytest

from declarative_sync.services.finalizer_guard import FinalizerGuard
from declarative_sync.services.synchronizer import ResourceSynchronizer
from tests.fixtures.object_store import InMemoryObjectStore
from tests.fixtures.sync_resources import OWNER


@pytest.fixture
def store():
    """Empty in-memory object store."""
    return InMemoryObjectStore()


@pytest.fixture
def synchronizer(store):
    """Synchronizer without an owner resource."""
    return ResourceSynchronizer(store, timeout=10, recreate_kinds=("Job",))


@pytest.fixture
def owner(store):
    """Owning custom resource, persisted in the store."""
    return store.seed(OWNER)


@pytest.fixture
def owned_synchronizer(store, owner):
    """Synchronizer bound to the persisted owner."""
    return ResourceSynchronizer(store, owner=owner, timeout=10)


@pytest.fixture
def guard(owned_synchronizer):
    return FinalizerGuard(owned_synchronizer)
