"""Pytest fixtures for API tests."""
from contextlib import nullcontext

import pytest
from fastapi.testclient import TestClient

from gradescope_due.api.main import app
from gradescope_due.refresher import RefreshConfig, Refresher


@pytest.fixture
def api_refresher(store):
    """Refresher on the temporary store, with no rate-limit pauses."""
    return Refresher(store, config=RefreshConfig(), sleep=lambda seconds: None)


@pytest.fixture
def client(api_refresher, scenario_pages, make_renderer):
    """Create a test client whose refreshes read canned pages."""
    app.state.refresher = api_refresher
    app.state.renderer_factory = lambda: nullcontext(make_renderer(scenario_pages))

    yield TestClient(app)

    del app.state.refresher
    del app.state.renderer_factory
