from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from app.core.security import verify_api_key
from app.main import app


@pytest.fixture()
def client():
    app.dependency_overrides[verify_api_key] = lambda: True
    # No context manager: startup (service wiring and the sweeper) is not run
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_validation_errors_use_error_envelope(client, monkeypatch):
    monkeypatch.setattr(app.state, "services", Mock(), raising=False)

    resp = client.post("/api/research", json={"client": {"name": "Acme"}})

    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "Input validation failed"
    assert any("domain" in error["loc"] for error in body["details"])


def test_jobs_before_startup_is_503(client):
    resp = client.get("/api/jobs/whatever")

    assert resp.status_code == 503
    assert resp.json() == {"detail": "Service not ready"}
