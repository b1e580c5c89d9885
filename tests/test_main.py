"""
Tests for the composition root.
"""
import logging

from fastapi.testclient import TestClient

from wkit.config import Settings
from wkit.main import create_app
from wkit.wtoken.store import TokenStore


def test_healthz_and_lifecycle():
    """Sweeper and log handler live exactly as long as the app's lifespan."""
    store = TokenStore()
    store.store_token("alice", "t", 60)
    app = create_app(Settings(SERVICE_NAME="wkit-test", METRICS_ENABLED=False), token_store=store)
    log_manager = app.state.log_manager
    assert log_manager.handler is None

    with TestClient(app) as client:
        handler = log_manager.handler
        assert handler in logging.getLogger().handlers
        assert app.state.token_sweeper.running
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {
            "code": 0,
            "message": "success",
            "data": {"status": "healthy", "tokens": 1},
        }
        assert "X-Request-ID" in response.headers

    assert not app.state.token_sweeper.running
    assert log_manager.handler is None
    assert handler not in logging.getLogger().handlers


def test_building_apps_attaches_no_handlers():
    before = list(logging.getLogger().handlers)

    create_app(Settings(SERVICE_NAME="wkit-a", METRICS_ENABLED=False))
    create_app(Settings(SERVICE_NAME="wkit-b", METRICS_ENABLED=False))

    assert logging.getLogger().handlers == before
