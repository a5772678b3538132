"""Tests for the relay HTTP API."""

import httpx
from fastapi.testclient import TestClient

from quickbeam.api.app import create_app
from tests.conftest import stored_files

ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


def _request_session(client: TestClient) -> str:
    response = client.post("/api/session/request")
    assert response.status_code == 201
    return response.json()["sessionId"]


def _connected_session(client: TestClient) -> str:
    session_id = _request_session(client)
    assert client.post(f"/api/session/{session_id}/connect").status_code == 200
    return session_id


def _upload(
    client: TestClient, session_id: str, content: bytes = b"\x89PNG"
) -> httpx.Response:
    return client.post(
        "/upload",
        params={"sessionId": session_id},
        files={"file": ("cat.png", content, "image/png")},
    )


def test_health(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_request_session_returns_pairing_details(container) -> None:
    client = TestClient(create_app(container))

    response = client.post("/api/session/request")

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["fullURL"] == (
        f"https://testserver/sender?SessionId={data['sessionId']}"
    )
    assert data["qrCodeData"] == data["fullURL"]
    assert data["timeoutMs"] == 120_000
    assert data["pollingIntervalMs"] == 2_000
    assert "expiresAt" in data
    assert isinstance(data["deadlineMs"], int)


def test_pairing_url_honors_forwarded_headers(container) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/api/session/request",
        headers={
            "X-Forwarded-Proto": "http, https",
            "X-Forwarded-Host": "beam.local:8080",
        },
    )

    data = response.json()
    assert data["fullURL"] == (
        f"http://beam.local:8080/sender?SessionId={data['sessionId']}"
    )


def test_pairing_url_prefers_public_base_url(container) -> None:
    container.settings.public_base_url = "https://beam.example/"
    client = TestClient(create_app(container))

    response = client.post(
        "/api/session/request", headers={"X-Forwarded-Host": "ignored.local"}
    )

    data = response.json()
    assert data["fullURL"] == (
        f"https://beam.example/sender?SessionId={data['sessionId']}"
    )


def test_receiver_learns_sender_connected(container) -> None:
    client = TestClient(create_app(container))
    session_id = _request_session(client)

    waiting = client.post(
        f"/api/session/{session_id}/status", params={"client": "receiver"}
    )
    assert waiting.json()["sessionStatus"] == "waiting_for_sender"
    assert waiting.json()["partnerConnected"] is False

    connect = client.post(f"/api/session/{session_id}/connect")
    assert connect.status_code == 200
    assert connect.json()["sessionId"] == session_id
    assert connect.json()["timeoutMs"] == 120_000

    connected = client.post(
        f"/api/session/{session_id}/status", params={"client": "receiver"}
    )
    data = connected.json()
    assert data["success"] is True
    assert data["sessionStatus"] == "connected"
    assert data["partnerConnected"] is True
    assert data["remainingTimeoutMs"] == 120_000
    assert data["newImageIds"] == []


def test_second_sender_conflicts(container) -> None:
    client = TestClient(create_app(container))
    session_id = _connected_session(client)

    response = client.post(f"/api/session/{session_id}/connect")

    assert response.status_code == 409
    assert response.json()["success"] is False
    assert response.json()["errorCode"] == "CONFLICT"


def test_unknown_session_is_not_found(container) -> None:
    client = TestClient(create_app(container))

    response = client.post("/api/session/missing/status", params={"client": "sender"})

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "message": "Session not found or expired.",
        "errorCode": "NOT_FOUND",
    }


def test_status_requires_valid_client(container) -> None:
    client = TestClient(create_app(container))
    session_id = _request_session(client)

    missing = client.post(f"/api/session/{session_id}/status")
    invalid = client.post(
        f"/api/session/{session_id}/status", params={"client": "viewer"}
    )

    assert missing.status_code == 400
    assert invalid.status_code == 400
    assert invalid.json()["message"] == (
        "Missing or invalid client type query parameter."
    )


def test_status_is_not_served_over_get(container) -> None:
    client = TestClient(create_app(container))
    session_id = _request_session(client)

    response = client.get(
        f"/api/session/{session_id}/status", params={"client": "receiver"}
    )

    assert response.status_code == 405


def test_image_relay_round_trip(container, settings) -> None:
    client = TestClient(create_app(container))
    session_id = _connected_session(client)

    upload = _upload(client, session_id)
    assert upload.status_code == 200
    image_id = upload.json()["imageId"]
    assert upload.json()["message"] == "File cat.png uploaded successfully."

    poll = client.post(
        f"/api/session/{session_id}/status", params={"client": "receiver"}
    )
    assert poll.json()["newImageIds"] == [image_id]
    assert poll.json()["photoCount"] == 1

    image = client.get(f"/image/{session_id}/{image_id}")
    assert image.status_code == 200
    assert image.content == b"\x89PNG"
    assert image.headers["content-type"] == "image/png"
    assert image.headers["cache-control"] == "no-store"
    assert stored_files(settings.upload_dir) == []

    again = client.get(f"/image/{session_id}/{image_id}")
    assert again.status_code == 404
    assert again.json()["message"] == "Image not found or session invalid."


def test_upload_requires_session_and_file(container) -> None:
    client = TestClient(create_app(container))
    session_id = _connected_session(client)

    no_session = client.post(
        "/upload", files={"file": ("cat.png", b"data", "image/png")}
    )
    no_file = client.post("/upload", params={"sessionId": session_id})

    assert no_session.status_code == 400
    assert no_session.json()["message"] == "Missing session ID."
    assert no_file.status_code == 400
    assert no_file.json()["message"] == "No file uploaded."


def test_upload_before_connect_is_rejected(container) -> None:
    client = TestClient(create_app(container))
    session_id = _request_session(client)

    response = _upload(client, session_id)

    assert response.status_code == 400
    assert response.json()["errorCode"] == "INVALID_STATE"


def test_upload_to_unknown_session_is_not_found(container) -> None:
    client = TestClient(create_app(container))

    response = _upload(client, "missing")

    assert response.status_code == 404


def test_oversized_upload_is_rejected(container, settings) -> None:
    container.relay_service.max_upload_bytes = 4
    client = TestClient(create_app(container))
    session_id = _connected_session(client)

    response = _upload(client, session_id, b"too large")

    assert response.status_code == 413
    assert response.json()["errorCode"] == "PAYLOAD_TOO_LARGE"
    assert stored_files(settings.upload_dir) == []


def test_upload_after_receiver_left_ends_session(container, clock, settings) -> None:
    client = TestClient(create_app(container))
    session_id = _connected_session(client)
    clock.advance(seconds=4)

    sender = client.post(
        f"/api/session/{session_id}/status", params={"client": "sender"}
    )
    assert sender.json()["sessionStatus"] == "receiver_disconnected"
    assert sender.json()["partnerConnected"] is False

    upload = _upload(client, session_id)
    assert upload.status_code == 400
    assert upload.json()["message"] == "Receiver partner disconnected."

    after = client.post(
        f"/api/session/{session_id}/status", params={"client": "sender"}
    )
    assert after.status_code == 404
    assert stored_files(settings.upload_dir) == []


def test_expired_session_is_not_found(container, clock) -> None:
    client = TestClient(create_app(container))
    session_id = _request_session(client)
    clock.advance(seconds=121)

    response = client.post(f"/api/session/{session_id}/connect")

    assert response.status_code == 404


def test_activity_is_visible_to_admin(container) -> None:
    client = TestClient(create_app(container))
    session_id = _connected_session(client)
    _upload(client, session_id)

    response = client.get("/admin/events", headers=ADMIN_HEADERS)

    actions = [event["action"] for event in response.json()["events"]]
    assert actions == ["UPLOAD_IMAGE", "SESSION_CONNECTED", "SESSION_CREATED"]
    assert response.json()["photoCount"] == 1
