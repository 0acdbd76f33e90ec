"""HTTP tests for the auth and meeting routers."""

import pytest
from fastapi.testclient import TestClient

from crm.exceptions import DeliveryError
from crm.main import app
from crm.routers import auth as auth_router
from crm.services.otp import OtpService
from crm.services.tokens import TokenCodec, get_token_codec


@pytest.fixture
def api_otp_service(app_db, notifier, monkeypatch):
    service = OtpService(notifier)
    monkeypatch.setattr(auth_router, "otp_service", service)
    return service


@pytest.fixture
def client(app_db, api_otp_service):
    with TestClient(app) as test_client:
        yield test_client


def _auth(role: str = "ROLE_ADMIN") -> dict:
    token = get_token_codec().issue("admin@incial.com", role)
    return {"Authorization": f"Bearer {token}"}


def test_root_and_health(client):
    assert client.get("/").json() == {"status": "Backend running"}
    assert client.get("/api/health").json() == {"status": "ok"}


# ── Password-reset codes ─────────────────────────────────

def test_forgot_password_then_verify(client, notifier):
    response = client.post("/api/v1/auth/forgot-password", json={"email": "A@X.com"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "OTP sent"
    assert body["expiresInSeconds"] == 600
    code = body["otp"]
    assert notifier.send.call_args.args[0] == "a@x.com"

    first = client.post("/api/v1/auth/verify-otp", json={"email": "a@x.com", "otp": code})
    second = client.post("/api/v1/auth/verify-otp", json={"email": "a@x.com", "otp": code})

    assert first.json() == {"verified": True}
    assert second.json() == {"verified": False}


def test_wrong_code_and_unknown_recipient_look_the_same(client):
    response = client.post("/api/v1/auth/forgot-password", json={"email": "a@x.com"})
    code = response.json()["otp"]
    wrong = "000000" if code != "000000" else "111111"

    wrong_response = client.post(
        "/api/v1/auth/verify-otp", json={"email": "a@x.com", "otp": wrong}
    )
    missing_response = client.post(
        "/api/v1/auth/verify-otp", json={"email": "nobody@x.com", "otp": code}
    )

    assert wrong_response.status_code == missing_response.status_code == 200
    assert wrong_response.json() == missing_response.json() == {"verified": False}


def test_delivery_failure_leaves_code_usable(api_otp_service, client, notifier):
    notifier.send.side_effect = DeliveryError("Failed to send OTP email")

    response = client.post("/api/v1/auth/forgot-password", json={"email": "a@x.com"})
    assert response.status_code == 502

    notifier.send.side_effect = None
    sent_message = notifier.send.call_args.args[1]
    code = next(
        token for token in sent_message.text_body.split() if token.isdigit() and len(token) == 6
    )
    verify = client.post("/api/v1/auth/verify-otp", json={"email": "a@x.com", "otp": code})
    assert verify.json() == {"verified": True}


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "not-an-email"},
        {},
    ],
)
def test_forgot_password_validates_email(client, payload):
    response = client.post("/api/v1/auth/forgot-password", json=payload)
    assert response.status_code == 422


@pytest.mark.parametrize("otp", ["12345", "1234567", "abcdef"])
def test_verify_otp_validates_code_shape(client, otp):
    response = client.post("/api/v1/auth/verify-otp", json={"email": "a@x.com", "otp": otp})
    assert response.status_code == 422


# ── Meetings ─────────────────────────────────────────────

MEETING = {
    "title": "Client onboarding",
    "dateTime": "2026-10-20T10:30:00",
    "meetingLink": "https://meet.example.com/abc",
    "notes": "Agenda attached",
    "companyId": 3,
    "assignedTo": "John Doe",
}


@pytest.mark.parametrize("role", ["ROLE_ADMIN", "ROLE_EMPLOYEE", "ROLE_SUPER_ADMIN"])
def test_meeting_crud_for_staff_roles(client, role):
    headers = _auth(role)

    created = client.post("/api/v1/meetings/create", json=MEETING, headers=headers)
    assert created.status_code == 201
    meeting = created.json()
    assert meeting["status"] == "Scheduled"
    assert meeting["meetingLink"] == MEETING["meetingLink"]
    assert "createdAt" in meeting

    listed = client.get("/api/v1/meetings/all", headers=headers)
    assert [m["id"] for m in listed.json()] == [meeting["id"]]

    updated = client.put(
        f"/api/v1/meetings/update/{meeting['id']}",
        json={"status": "Completed", "notes": None},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "Completed"
    assert updated.json()["notes"] == "Agenda attached"

    deleted = client.delete(f"/api/v1/meetings/delete/{meeting['id']}", headers=headers)
    assert deleted.status_code == 204
    assert client.get("/api/v1/meetings/all", headers=headers).json() == []


def test_update_and_delete_missing_meeting_return_404(client):
    headers = _auth()

    update = client.put("/api/v1/meetings/update/999", json={"title": "x"}, headers=headers)
    delete = client.delete("/api/v1/meetings/delete/999", headers=headers)

    assert update.status_code == 404
    assert delete.status_code == 404


def test_meetings_require_token(client):
    assert client.get("/api/v1/meetings/all").status_code == 401
    response = client.get("/api/v1/meetings/all", headers={"Authorization": "Token abc"})
    assert response.status_code == 401


def test_meetings_reject_invalid_token(client):
    foreign = TokenCodec(b"x" * 32).issue("admin@incial.com", "ROLE_ADMIN")
    response = client.get(
        "/api/v1/meetings/all", headers={"Authorization": f"Bearer {foreign}"}
    )
    assert response.status_code == 401


def test_meetings_reject_client_role(client):
    response = client.get("/api/v1/meetings/all", headers=_auth("ROLE_CLIENT"))
    assert response.status_code == 403


def test_overlapping_reset_request_returns_503(client, monkeypatch):
    from crm.services.otp_store import OtpStore

    first = client.post("/api/v1/auth/forgot-password", json={"email": "a@x.com"})
    code = first.json()["otp"]
    with monkeypatch.context() as patch:
        patch.setattr(OtpStore, "delete_all_for", lambda self, recipient: 0)
        second = client.post(
            "/api/v1/auth/forgot-password", json={"email": "a@x.com"}
        )

    assert second.status_code == 503
    verify = client.post("/api/v1/auth/verify-otp", json={"email": "a@x.com", "otp": code})
    assert verify.json() == {"verified": True}
