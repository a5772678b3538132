"""Tests for admin endpoints."""

import asyncio

from fastapi.testclient import TestClient

from quickbeam.api.app import create_app


def test_admin_requires_token(container) -> None:
    client = TestClient(create_app(container))

    assert client.get("/admin/health").status_code == 401
    response = client.get("/admin/health", headers={"X-Admin-Token": "wrong"})
    assert response.status_code == 401
    response = client.get("/admin/health", headers={"X-Admin-Token": "admin-token"})
    assert response.status_code == 200


def test_admin_disabled_without_configured_token(container) -> None:
    container.settings.admin_token = None
    client = TestClient(create_app(container))

    response = client.get("/admin/health", headers={"X-Admin-Token": "admin-token"})

    assert response.status_code == 401


def test_admin_sessions_endpoint(container) -> None:
    client = TestClient(create_app(container))
    created = container.session_service.create_session()
    asyncio.run(container.session_service.connect_sender(created.session_id))

    response = client.get("/admin/sessions", headers={"X-Admin-Token": "admin-token"})

    assert response.status_code == 200
    data = response.json()
    assert data["sessions"][0]["id"] == created.session_id
    assert data["sessions"][0]["status"] == "connected"
    assert data["sessions"][0]["remainingMs"] == 120_000
    assert data["sessions"][0]["pendingCount"] == 0


def test_admin_events_endpoint(container) -> None:
    client = TestClient(create_app(container))
    client.post("/api/session/request", headers={"X-Forwarded-For": "10.0.0.9"})
    client.post("/api/session/request")

    response = client.get(
        "/admin/events",
        params={"page": 1, "limit": 1},
        headers={"X-Admin-Token": "admin-token"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["totalEvents"] == 2
    assert data["totalPages"] == 2
    assert data["currentPage"] == 1
    assert data["photoCount"] == 0
    assert len(data["events"]) == 1
    assert data["events"][0]["action"] == "SESSION_CREATED"


def test_admin_events_rejects_bad_paging(container) -> None:
    client = TestClient(create_app(container))

    response = client.get(
        "/admin/events",
        params={"page": 0},
        headers={"X-Admin-Token": "admin-token"},
    )

    assert response.status_code == 400
