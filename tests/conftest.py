import os

# The module level store is built at import time; keep it off Redis and disk
os.environ["STATE_BACKEND"] = "memory"

import pytest
from fastapi.testclient import TestClient

from app import app
from backend import MemorySnapshotStore
from engine import RendezvousEngine
from routers.signaling import get_engine


@pytest.fixture
def store():
    return MemorySnapshotStore()


@pytest.fixture
def engine(store):
    return RendezvousEngine(store)


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
