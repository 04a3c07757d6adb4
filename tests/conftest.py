"""Shared pytest fixtures."""

import pytest
from fastapi.testclient import TestClient

from spc_service.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)
