"""Tests for certificate requests and the admin endpoints that process them."""

from unittest.mock import AsyncMock

import pytest

from mathquest.config import settings
from mathquest.models.certificate_request import STATUS_ISSUED, STATUS_PENDING, CertificateRequest
from mathquest.routers import certificates
from mathquest.services.certificate_service import build_certificate_url

ADMIN_KEY = "test-admin-key"


@pytest.fixture
def notify(monkeypatch):
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr(certificates, "send_certificate_request_notification", mock)
    return mock


@pytest.fixture
def admin_headers(monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    return {"X-Admin-Key": ADMIN_KEY}


def request_certificate(client, username="alice", score=42):
    response = client.post("/api/submit-request", json={"username": username, "score": score})
    assert response.status_code == 200
    return response.json()["request_id"]


class TestSubmitRequest:
    def test_stores_request_and_notifies(self, client, db_session, notify):
        response = client.post("/api/submit-request", json={"username": "alice", "score": 42})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True

        stored = db_session.get(CertificateRequest, data["request_id"])
        assert stored.username == "alice"
        assert stored.score == 42
        assert stored.status == STATUS_PENDING
        notify.assert_called_once_with(request_id=stored.id, username="alice", score=42)

    def test_stored_even_when_webhook_fails(self, client, db_session, monkeypatch):
        monkeypatch.setattr(
            certificates, "send_certificate_request_notification", AsyncMock(return_value=False)
        )

        request_id = request_certificate(client)

        assert db_session.get(CertificateRequest, request_id) is not None

    @pytest.mark.parametrize(
        "body",
        [
            {"score": 42},
            {"username": "alice"},
            {"username": "", "score": 42},
            {"username": "   ", "score": 42},
            {"username": "alice", "score": -1},
            {"username": "alice", "score": "42"},
            {"username": "x" * 26, "score": 42},
        ],
    )
    def test_invalid_request_is_400(self, client, notify, body):
        response = client.post("/api/submit-request", json=body)

        assert response.status_code == 400
        assert response.json()["success"] is False
        notify.assert_not_called()


class TestAdminAuth:
    def test_missing_key_is_rejected(self, client, admin_headers):
        assert client.get("/admin/requests").status_code == 400

    def test_wrong_key_is_401(self, client, admin_headers):
        response = client.get("/admin/requests", headers={"X-Admin-Key": "wrong"})

        assert response.status_code == 401

    def test_unconfigured_admin_is_503(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_api_key", None)

        response = client.get("/admin/requests", headers={"X-Admin-Key": "anything"})

        assert response.status_code == 503


class TestAdminRequests:
    def test_lists_newest_first(self, client, notify, admin_headers):
        first = request_certificate(client, "alice", 10)
        second = request_certificate(client, "bob", 20)

        response = client.get("/admin/requests", headers=admin_headers)

        assert response.status_code == 200
        assert [row["id"] for row in response.json()] == [second, first]
        assert response.json()[0]["status"] == STATUS_PENDING

    def test_generate_certificate_marks_issued(self, client, db_session, notify, admin_headers):
        request_id = request_certificate(client, "Ada Lovelace", 99)

        response = client.get(f"/admin/generate-cert/{request_id}", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "Ada Lovelace"
        assert data["image_url"] == build_certificate_url("Ada Lovelace", 99)
        assert "name=Ada+Lovelace" in data["image_url"]
        assert "score=99" in data["image_url"]

        stored = db_session.get(CertificateRequest, request_id)
        db_session.refresh(stored)
        assert stored.status == STATUS_ISSUED

    def test_generate_unknown_request_is_404(self, client, admin_headers):
        response = client.get("/admin/generate-cert/999", headers=admin_headers)

        assert response.status_code == 404

    def test_delete_request(self, client, db_session, notify, admin_headers):
        request_id = request_certificate(client)

        response = client.delete(f"/admin/delete-request/{request_id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert db_session.get(CertificateRequest, request_id) is None

    def test_delete_unknown_request_is_404(self, client, admin_headers):
        response = client.delete("/admin/delete-request/999", headers=admin_headers)

        assert response.status_code == 404


def test_certificate_url_respects_existing_query(monkeypatch):
    monkeypatch.setattr(settings, "certificate_image_base_url", "https://img.test/cert?theme=gold")

    assert build_certificate_url("bo", 5) == "https://img.test/cert?theme=gold&name=bo&score=5"
