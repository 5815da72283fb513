"""Fixtures for the HTTP and WebSocket surface."""

import pytest
from fastapi.testclient import TestClient

from tokenprism.web.app import create_app


@pytest.fixture
def client(container):
    app = create_app(container=container, run_refresh=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def live_client(container):
    """Client whose app runs the first refresh cycle on startup."""
    app = create_app(container=container, run_refresh=True)
    with TestClient(app) as test_client:
        yield test_client
