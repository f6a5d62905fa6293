"""
Pytest configuration and shared fixtures.

Test environment variables are set here before any wa_admin import so the
engine binds to the test database. Settings are read per request, so
individual tests can still change secrets with monkeypatch.setenv.
"""

import os

os.environ["DATABASE_URL"] = "sqlite:///./test_wa_admin.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["WEBHOOK_VERIFY_TOKEN"] = "test-verify-token"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "s3cret-Password"
os.environ["AUTH_TOKEN_SECRET"] = "test-signing-secret-0123456789abcdef"
os.environ["WHATSAPP_ACCESS_TOKEN"] = "test-whatsapp-token"
os.environ["OPENAI_API_KEY"] = "test-openai-key"

import pytest
from fastapi.testclient import TestClient

from wa_admin.main import app, get_reply_generator, get_whatsapp_client
from wa_admin.storage import Base, SessionLocal, engine
from wa_admin.whatsapp import WhatsAppAPIError
from wa_admin.ai import ReplyGenerationError


class FakeWhatsApp:
    """Records sends instead of calling the Graph API."""

    def __init__(self):
        self.sent = []
        self.fail = False
        self.return_id = True

    def send_text(self, phone_number_id, to, text):
        if self.fail:
            raise WhatsAppAPIError(400, '{"error":{"message":"Invalid parameter"}}')
        self.sent.append({"phone_number_id": phone_number_id, "to": to, "text": text})
        if not self.return_id:
            return {"messaging_product": "whatsapp"}
        return {"messages": [{"id": f"wamid.out{len(self.sent)}"}]}


class FakeReplies:
    """Records completion requests and returns a fixed reply."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.reply = "Hola, ¿en qué puedo ayudarte?"

    def generate(self, message, history, custom_prompt=None):
        self.calls.append({"message": message, "history": list(history), "custom_prompt": custom_prompt})
        if self.fail:
            raise ReplyGenerationError(500, "upstream unavailable")
        return self.reply


@pytest.fixture
def fake_whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def fake_replies():
    return FakeReplies()


@pytest.fixture(scope="function")
def client(fake_whatsapp, fake_replies):
    """Test client with a fresh database and fake provider clients."""
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_whatsapp_client] = lambda: fake_whatsapp
    app.dependency_overrides[get_reply_generator] = lambda: fake_replies

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(client):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def auth_headers(client):
    response = client.post(
        "/simple-auth",
        json={"action": "login", "username": "admin", "password": "s3cret-Password"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
