"""Shared fixtures: isolated services on tmp_path and an API client."""
import pytest
from fastapi.testclient import TestClient

from helmwatch.config import Settings
from helmwatch.main import app, limiter
from helmwatch.services import build_services


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        DATA_DIR=str(tmp_path),
        ANCHOR_POSITION_PERIOD_SECONDS=0.0,
        COLLISION_SCAN_INTERVAL_SECONDS=3600.0,
    )


@pytest.fixture
def services(test_settings):
    return build_services(test_settings)


@pytest.fixture
def api_client(services):
    """TestClient whose lifespan starts the pre-built services."""
    app.state.services = services
    limiter.enabled = False
    try:
        with TestClient(app) as client:
            yield client
    finally:
        limiter.enabled = True
        del app.state.services
