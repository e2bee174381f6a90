"""
Shared fixtures: a throwaway entity store on disk and an API client bound to it.
"""

import pytest
from fastapi.testclient import TestClient

from dataflow.api.main import create_app
from dataflow.core.db import EntityStore


@pytest.fixture
def store(tmp_path):
    """Entity store on a temporary database file."""
    entity_store = EntityStore(str(tmp_path / "dataflow_test.db"))
    yield entity_store
    entity_store.close()


@pytest.fixture
def client(store):
    """TestClient for an app wired to the temporary store."""
    return TestClient(create_app(store))
