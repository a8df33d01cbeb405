"""Tests for the health and index endpoints."""
from __future__ import annotations

from styledecor import create_app


def test_health_endpoint_returns_ok(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json == {"status": "ok"}


def test_index_reports_running(client) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json["success"] is True
    assert response.json["message"] == "StyleDecor API is running"


def test_database_health_endpoint_ok() -> None:
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "AUTH_BACKEND": "signed",
    })
    client = app.test_client()

    response = client.get("/db-health")

    assert response.status_code == 200
    assert response.json == {"database": "ok"}
