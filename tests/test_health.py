"""Smoke tests for the public health endpoints."""
from __future__ import annotations


def test_index(client) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json["version"] == "1.0.0"


def test_health_endpoint(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json["status"] == "ok"
    assert "timestamp" in response.json


def test_database_health_endpoint_ok(client) -> None:
    response = client.get("/db-health")

    assert response.status_code == 200
    assert response.json == {"database": "ok"}


def test_unknown_route_returns_json_404(client) -> None:
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json["error"] == "endpoint_not_found"
    assert response.json["path"] == "/api/nope"


def test_protected_route_requires_token(client) -> None:
    response = client.get("/api/customers")

    assert response.status_code == 401
    assert response.json["error"] == "unauthorized"


def test_garbage_token_is_rejected(client) -> None:
    response = client.get("/api/customers", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 403
    assert response.json["error"] == "invalid_token"
