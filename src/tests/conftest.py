import pytest

from egress_gateway._internal.testing.store import InMemoryObjectStore


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()
