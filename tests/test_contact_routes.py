"""
tests/test_contact_routes.py -- Integration tests for /api/v1/contact.

Coverage:
  - Submission persists as NOUVEAU and returns 201 even when the mail
    transport is unreachable (the conftest mailer always fails)
  - A subject that cannot be a mail header still yields 201
  - Validation reports every field
  - Per-IP submission rate limit
  - Admin inbox: list, filter, get, status change (closed enum), delete, stats
  - SMTP check endpoint surfaces transport failure as 502
"""

from __future__ import annotations

from unittest.mock import patch

from conftest import auth_headers
from fastapi.testclient import TestClient

from core.config import Settings
from portfolio.mailer import ContactMailer


def _contact_body(**overrides) -> dict:
    body = {
        "name": "Camille Laurent",
        "email": "camille@example.com",
        "company": "Laurent & Fils",
        "subject": "Demande de devis",
        "message": "Bonjour, nous souhaitons refaire notre site internet.",
    }
    body.update(overrides)
    return body


def _submit(client: TestClient, **overrides) -> str:
    resp = client.post("/api/v1/contact", json=_contact_body(**overrides))
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()["data"]["id"]


class TestContactSubmission:
    def test_submit_succeeds_when_mail_fails(self, api_client) -> None:
        """The message is stored as NOUVEAU and the visitor gets success despite the mail failure."""
        client, admin_token, _ = api_client
        resp = client.post("/api/v1/contact", json=_contact_body())
        assert resp.status_code == 201
        data = resp.json()
        assert data["success"] is True
        message_id = data["data"]["id"]

        stored = client.get(f"/api/v1/contact/admin/{message_id}", headers=auth_headers(admin_token))
        assert stored.status_code == 200
        assert stored.json()["data"]["status"] == "NOUVEAU"
        client.app.state.mailer.send_contact_notifications.assert_called()

    def test_submit_when_mail_not_configured(self, api_client) -> None:
        client, _, _ = api_client
        mailer = client.app.state.mailer
        mailer.configured = False
        try:
            mailer.send_contact_notifications.reset_mock()
            resp = client.post("/api/v1/contact", json=_contact_body())
            assert resp.status_code == 201
            mailer.send_contact_notifications.assert_not_called()
        finally:
            mailer.configured = True

    def test_submit_with_line_break_in_subject_still_succeeds(self, api_client) -> None:
        """A subject that cannot become a mail header must not turn a stored message into a 500."""
        client, admin_token, _ = api_client
        settings = Settings(
            debug=True,
            secret_key="s" * 64,
            email_host="smtp.example.com",
            email_user="noreply@ariacreative.test",
            email_password="smtp-password",
            admin_email="hello@ariacreative.test",
        )
        stats_url = "/api/v1/contact/admin/stats"
        before = client.get(stats_url, headers=auth_headers(admin_token)).json()["data"]["total"]
        original = client.app.state.mailer
        client.app.state.mailer = ContactMailer(settings)
        try:
            with patch("portfolio.mailer.smtplib.SMTP"):
                resp = client.post("/api/v1/contact", json=_contact_body(subject="Devis\nsite web"))
        finally:
            client.app.state.mailer = original
        assert resp.status_code == 201, resp.text
        assert resp.json()["success"] is True
        after = client.get(stats_url, headers=auth_headers(admin_token)).json()["data"]["total"]
        assert after == before + 1

    def test_submit_validation_lists_every_field(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/v1/contact",
            json={"name": "A", "email": "nope", "subject": "Hi", "message": "short"},
        )
        assert resp.status_code == 422
        fields = {d["field"] for d in resp.json()["details"]}
        assert fields == {"name", "email", "subject", "message"}

    def test_submit_rate_limited_per_ip(self, api_client) -> None:
        client, _, _ = api_client
        for _ in range(5):
            _submit(client)
        resp = client.post("/api/v1/contact", json=_contact_body())
        assert resp.status_code == 429
        data = resp.json()
        assert data["success"] is False
        assert data["error"] == "rate_limited"
        assert "Retry-After" in resp.headers


class TestContactAdmin:
    def test_inbox_requires_admin(self, api_client) -> None:
        client, _, editor_token = api_client
        assert client.get("/api/v1/contact/admin").status_code == 401
        assert client.get("/api/v1/contact/admin", headers=auth_headers(editor_token)).status_code == 403

    def test_list_newest_first(self, api_client) -> None:
        client, admin_token, _ = api_client
        first = _submit(client, subject="Premier message")
        second = _submit(client, subject="Second message")
        resp = client.get("/api/v1/contact/admin", headers=auth_headers(admin_token))
        assert resp.status_code == 200
        ids = [m["id"] for m in resp.json()["data"]]
        assert ids.index(second) < ids.index(first)

    def test_status_change_and_filter(self, api_client) -> None:
        client, admin_token, _ = api_client
        message_id = _submit(client)
        resp = client.put(
            f"/api/v1/contact/admin/{message_id}/status",
            json={"status": "TRAITE"},
            headers=auth_headers(admin_token),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["status"] == "TRAITE"

        listed = client.get("/api/v1/contact/admin?status=TRAITE", headers=auth_headers(admin_token)).json()["data"]
        assert message_id in {m["id"] for m in listed}
        assert all(m["status"] == "TRAITE" for m in listed)

    def test_status_change_rejects_unknown_status(self, api_client) -> None:
        client, admin_token, _ = api_client
        message_id = _submit(client)
        resp = client.put(
            f"/api/v1/contact/admin/{message_id}/status",
            json={"status": "SPAM"},
            headers=auth_headers(admin_token),
        )
        assert resp.status_code == 422

    def test_status_change_missing_404(self, api_client) -> None:
        client, admin_token, _ = api_client
        resp = client.put("/api/v1/contact/admin/missing/status", json={"status": "LU"}, headers=auth_headers(admin_token))
        assert resp.status_code == 404

    def test_delete(self, api_client) -> None:
        client, admin_token, _ = api_client
        message_id = _submit(client)
        resp = client.delete(f"/api/v1/contact/admin/{message_id}", headers=auth_headers(admin_token))
        assert resp.status_code == 200
        assert client.get(f"/api/v1/contact/admin/{message_id}", headers=auth_headers(admin_token)).status_code == 404
        assert client.delete(f"/api/v1/contact/admin/{message_id}", headers=auth_headers(admin_token)).status_code == 404

    def test_stats_counts_every_status(self, api_client) -> None:
        client, admin_token, _ = api_client
        message_id = _submit(client)
        client.put(f"/api/v1/contact/admin/{message_id}/status", json={"status": "ARCHIVE"}, headers=auth_headers(admin_token))
        resp = client.get("/api/v1/contact/admin/stats", headers=auth_headers(admin_token))
        assert resp.status_code == 200
        stats = resp.json()["data"]
        assert set(stats["byStatus"]) == {"NOUVEAU", "LU", "TRAITE", "ARCHIVE"}
        assert stats["byStatus"]["ARCHIVE"] >= 1
        assert stats["total"] == sum(stats["byStatus"].values())

    def test_email_check_reports_transport_failure(self, api_client) -> None:
        client, admin_token, _ = api_client
        resp = client.get("/api/v1/contact/test", headers=auth_headers(admin_token))
        assert resp.status_code == 502
        assert resp.json()["error"] == "email_failed"
