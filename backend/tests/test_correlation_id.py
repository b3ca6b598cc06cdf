"""Tests for the correlation ID header on all responses."""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

import mathquest.main as main_module
from mathquest.database import get_db
from mathquest.main import app
from mathquest.middleware.rate_limit import limiter


def test_correlation_id_on_success(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert len(response.headers["X-Correlation-ID"]) == 8  # 4 bytes as hex


def test_correlation_id_on_validation_error(client):
    response = client.post("/api/generate-problem", json={})
    assert response.status_code == 400
    assert len(response.headers["X-Correlation-ID"]) == 8


def test_correlation_id_on_quota_denial(client):
    client.post("/api/generate-problem", json={"prompt": "p"})
    response = client.post("/api/generate-problem", json={"prompt": "p"})
    assert response.status_code == 429
    assert len(response.headers["X-Correlation-ID"]) == 8


def test_inbound_correlation_id_is_reused(client):
    response = client.get("/health", headers={"X-Correlation-ID": "deadbeef"})
    assert response.headers["X-Correlation-ID"] == "deadbeef"


def test_malformed_inbound_correlation_id_is_replaced(client):
    response = client.get("/health", headers={"X-Correlation-ID": "not-an-id"})
    correlation_id = response.headers["X-Correlation-ID"]
    assert len(correlation_id) == 8
    assert correlation_id != "not-an-id"


def test_correlation_id_on_unhandled_exception(db_session, monkeypatch):
    """Unhandled errors become a bare 500 that still carries the ID."""
    from mathquest.routers import leaderboard

    def raise_error(*args, **kwargs):
        raise RuntimeError("Unexpected failure with secret detail")

    monkeypatch.setattr(leaderboard, "get_top_players", raise_error)
    alert = AsyncMock(return_value=True)
    monkeypatch.setattr(main_module, "send_error_alert", alert)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    original_engine = main_module.engine
    main_module.engine = db_session.get_bind()

    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/api/leaderboard/top")

            assert response.status_code == 500
            assert response.json() == {"detail": "Internal Server Error"}
            correlation_id = response.headers["X-Correlation-ID"]
            assert len(correlation_id) == 8

            alert.assert_awaited_once()
            assert alert.await_args.kwargs["error_type"] == "RuntimeError"
            assert alert.await_args.kwargs["path"] == "/api/leaderboard/top"
            assert alert.await_args.kwargs["correlation_id"] == correlation_id
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True
        main_module.engine = original_engine


def test_correlation_ids_unique_across_requests(client):
    first = client.get("/health").headers["X-Correlation-ID"]
    second = client.get("/health").headers["X-Correlation-ID"]

    assert first != second
