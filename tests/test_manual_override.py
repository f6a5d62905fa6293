"""
Tests for the POST /manual-override endpoint.

Tests cover:
- Bearer token gate (401 before the body is read)
- get_chats ordering and the toggle_ai round trip
- get_messages limit, ordering and unread reset
- send_message delivery and persistence
- Validation (400) and provider errors (500)
"""

from datetime import datetime, timedelta, timezone

import pytest

from wa_admin import storage
from wa_admin.auth import issue_token
from wa_admin.config import get_settings

from helpers import text_message, webhook_body


class TestManualOverrideAuth:
    """Requests without a valid token are rejected."""

    def test_missing_header(self, client):
        response = client.post("/manual-override", json={"action": "get_chats"})

        assert response.status_code == 401

    @pytest.mark.parametrize("header", ["Bearer not-a-token", "Basic YWRtaW46cGFzcw==", "Bearer "])
    def test_malformed_header(self, client, header):
        response = client.post("/manual-override", json={"action": "get_chats"}, headers={"Authorization": header})

        assert response.status_code == 401

    def test_expired_token(self, client):
        settings = get_settings()
        issued = datetime.now(timezone.utc) - timedelta(hours=settings.AUTH_TOKEN_TTL_HOURS, seconds=1)
        token = issue_token("admin", settings, now=issued.timestamp())

        response = client.post(
            "/manual-override", json={"action": "get_chats"}, headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401

    def test_gate_runs_before_body_parsing(self, client):
        response = client.post("/manual-override", content="{broken", headers={"Content-Type": "application/json"})

        assert response.status_code == 401


class TestGetChats:

    def test_empty(self, client, auth_headers):
        response = client.post("/manual-override", json={"action": "get_chats"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "chats": []}

    def test_ordered_by_last_activity_desc(self, client, db, auth_headers):
        now = datetime.now(timezone.utc)
        storage.upsert_configuration(db, "111", last_activity=now - timedelta(hours=2))
        storage.upsert_configuration(db, "222", last_activity=now)
        storage.upsert_configuration(db, "333")

        response = client.post("/manual-override", json={"action": "get_chats"}, headers=auth_headers)

        chats = response.json()["chats"]
        assert [c["whatsapp_id"] for c in chats] == ["222", "111", "333"]
        assert set(chats[0]) == {
            "whatsapp_id", "contact_name", "ai_enabled", "ai_prompt", "last_activity", "unread_count"
        }

    def test_toggle_then_get_chats_round_trip(self, client, auth_headers):
        toggle = client.post(
            "/manual-override",
            json={"action": "toggle_ai", "whatsapp_id": "5215512345678", "ai_enabled": True,
                  "custom_prompt": "Sé breve"},
            headers=auth_headers,
        )
        assert toggle.status_code == 200
        assert toggle.json() == {"success": True, "message": "IA activada para 5215512345678"}

        chats = client.post("/manual-override", json={"action": "get_chats"}, headers=auth_headers).json()["chats"]

        assert chats[0]["whatsapp_id"] == "5215512345678"
        assert chats[0]["ai_enabled"] is True
        assert chats[0]["ai_prompt"] == "Sé breve"

    def test_toggle_off_clears_prompt(self, client, db, auth_headers):
        storage.upsert_configuration(db, "5215512345678", ai_enabled=True, ai_prompt="viejo")

        response = client.post(
            "/manual-override",
            json={"action": "toggle_ai", "whatsapp_id": "5215512345678"},
            headers=auth_headers,
        )

        assert response.json()["message"] == "IA desactivada para 5215512345678"
        db.expire_all()
        config = storage.get_configuration(db, "5215512345678")
        assert config.ai_enabled is False
        assert config.ai_prompt is None


class TestGetMessages:

    def test_returns_most_recent_fifty_ascending(self, client, db, auth_headers):
        for i in range(55):
            storage.create_message(db, "5215512345678", f"mensaje {i}", f"wamid.{i}", "incoming")
        storage.create_message(db, "5219999999999", "otro chat", "wamid.other", "incoming")

        response = client.post(
            "/manual-override",
            json={"action": "get_messages", "whatsapp_id": "5215512345678"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        messages = response.json()["messages"]
        assert len(messages) == 50
        assert [m["message_text"] for m in messages] == [f"mensaje {i}" for i in range(5, 55)]

    def test_resets_unread_count(self, client, db, auth_headers):
        client.post("/webhook", json=webhook_body([
            text_message(message_id="wamid.a"), text_message(message_id="wamid.b"),
        ]))
        assert storage.get_configuration(db, "5215512345678").unread_count == 2

        client.post(
            "/manual-override",
            json={"action": "get_messages", "whatsapp_id": "5215512345678"},
            headers=auth_headers,
        )

        db.expire_all()
        assert storage.get_configuration(db, "5215512345678").unread_count == 0

    def test_requires_whatsapp_id(self, client, auth_headers):
        response = client.post("/manual-override", json={"action": "get_messages"}, headers=auth_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "get_messages: whatsapp_id required"


class TestSendMessage:

    def test_login_send_and_read_back(self, client, fake_whatsapp):
        login = client.post("/simple-auth", json={"username": "admin", "password": "s3cret-Password"})
        assert login.status_code == 200
        headers = {"Authorization": f"Bearer {login.json()['token']}"}

        chats = client.post("/manual-override", json={"action": "get_chats"}, headers=headers)
        assert chats.status_code == 200
        assert isinstance(chats.json()["chats"], list)

        sent = client.post(
            "/manual-override",
            json={"action": "send_message", "whatsapp_id": "5215512345678", "message": "hola",
                  "phone_number_id": "106540352242922"},
            headers=headers,
        )
        assert sent.status_code == 200
        assert sent.json()["success"] is True
        assert sent.json()["whatsapp_message_id"] == "wamid.out1"
        assert fake_whatsapp.sent == [{"phone_number_id": "106540352242922", "to": "5215512345678", "text": "hola"}]

        messages = client.post(
            "/manual-override",
            json={"action": "get_messages", "whatsapp_id": "5215512345678"},
            headers=headers,
        ).json()["messages"]
        assert any(
            m["message_text"] == "hola" and m["direction"] == "outgoing" and m["is_ai_generated"] is False
            for m in messages
        )

    def test_placeholder_id_when_provider_omits_it(self, client, auth_headers, fake_whatsapp):
        fake_whatsapp.return_id = False

        response = client.post(
            "/manual-override",
            json={"action": "send_message", "whatsapp_id": "521", "message": "hola", "phone_number_id": "106"},
            headers=auth_headers,
        )

        assert response.json()["whatsapp_message_id"].startswith("manual_")

    @pytest.mark.parametrize("missing", ["whatsapp_id", "message", "phone_number_id"])
    def test_required_fields(self, client, auth_headers, missing, fake_whatsapp):
        body = {"action": "send_message", "whatsapp_id": "521", "message": "hola", "phone_number_id": "106"}
        body.pop(missing)

        response = client.post("/manual-override", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == f"send_message: {missing} required"
        assert fake_whatsapp.sent == []

    def test_provider_error_returns_500(self, client, db, auth_headers, fake_whatsapp):
        fake_whatsapp.fail = True

        response = client.post(
            "/manual-override",
            json={"action": "send_message", "whatsapp_id": "521", "message": "hola", "phone_number_id": "106"},
            headers=auth_headers,
        )

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "WhatsApp API error: 400" in response.json()["error"]
        assert storage.get_conversation_messages(db, "521") == []


class TestActionValidation:

    @pytest.mark.parametrize("body", [{"action": "list_chats"}, {"action": None}, {}])
    def test_invalid_action(self, client, auth_headers, body):
        response = client.post("/manual-override", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid action"}

    def test_toggle_requires_whatsapp_id(self, client, auth_headers):
        response = client.post(
            "/manual-override", json={"action": "toggle_ai", "ai_enabled": True}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "toggle_ai: whatsapp_id required"

    def test_non_object_body(self, client, auth_headers):
        response = client.post("/manual-override", json=["get_chats"], headers=auth_headers)

        assert response.status_code == 400
