"""Tests for the FastAPI endpoints."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from forgebot.api.app import create_app
from forgebot.api.routes.chat import ChatRequest
from forgebot.bot.events import Callback, Command, FreeformText
from forgebot.bot.handlers.start import HELP_MESSAGE
from forgebot.config import get_settings
from forgebot.errors import AuthError

COOKIE = get_settings().session_cookie_name


@pytest.fixture
def test_app(chat):
    """Application wired to the in-memory test services."""
    return create_app(chat_service=chat)


@pytest_asyncio.fixture
async def client(test_app):
    """Create async test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "forgebot"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["config"]["environment"] == "test"
        assert data["config"]["session"]["workflow_timeout_seconds"] == 900
        assert data["config"]["wallet_encryption_key"] in ("***", "(not set)")
        assert data["active_leases"] == 0


class TestEnvelope:
    """Tests for mapping the request envelope to events."""

    def test_callback_wins(self):
        request = ChatRequest(callback="confirm_yes", command="buy", args="0.1")

        assert request.to_event("buy") == Callback(data="confirm_yes", args="0.1")

    def test_explicit_command(self):
        assert ChatRequest(command="history", args="week").to_event() == Command(name="history", args="week")

    def test_args_are_typed_input(self):
        assert ChatRequest(args="0.05").to_event("buy") == FreeformText(value="0.05")
        assert ChatRequest(args=0.05).to_event("buy") == FreeformText(value="0.05")

    def test_endpoint_command_is_default(self):
        assert ChatRequest().to_event("balance") == Command(name="balance")
        assert ChatRequest(args="   ").to_event("balance") == Command(name="balance")

    def test_nothing_to_do(self):
        assert ChatRequest().to_event() is None

    def test_identity(self):
        identity = ChatRequest.model_validate({"fid": 1001, "displayName": "Tester"}).identity()

        assert identity.fid == "1001"
        assert identity.display_name == "Tester"
        assert ChatRequest(fid="").identity().fid is None


class TestChatEndpoints:
    @pytest.mark.asyncio
    async def test_start_registers_and_sets_cookie(self, client):
        response = await client.post("/api/start", json={"fid": 1001, "username": "tester"})

        assert response.status_code == 200
        assert response.json() == {"response": HELP_MESSAGE}
        assert COOKIE in response.cookies
        assert "httponly" in response.headers["set-cookie"].lower()

    @pytest.mark.asyncio
    async def test_guest_is_asked_to_start(self, client):
        response = await client.post("/api/wallet", json={})

        assert response.json()["response"] == AuthError().user_message

    @pytest.mark.asyncio
    async def test_invalid_request(self, client):
        response = await client.post("/api/input", json={})

        assert response.status_code == 200
        assert response.json()["response"] == "❌ Invalid request. Please try again."

    @pytest.mark.asyncio
    async def test_buy_across_requests(self, client, funded_wallet):
        identity = {"fid": "1001"}

        menu = await client.post("/api/buy", json=identity)
        labels = [button["label"] for row in menu.json()["buttons"] for button in row]
        assert "USDC" in labels

        picked = await client.post("/api/callback", json={**identity, "callback": "USDC"})
        assert picked.json()["response"].startswith("💱 Buy USDC")

        quoted = await client.post("/api/input", json={**identity, "args": "0.05"})
        assert "149.55 USDC" in quoted.json()["response"]

        done = await client.post("/api/callback", json={**identity, "callback": "confirm_yes"})
        assert done.json()["response"].startswith("✅ Transaction Successful")

    @pytest.mark.asyncio
    async def test_generic_command_endpoint(self, client):
        response = await client.post("/api/chat/command", json={"command": "/help"})

        assert response.json()["response"] == HELP_MESSAGE

    @pytest.mark.asyncio
    async def test_new_cookie_starts_new_session(self, client, funded_wallet):
        await client.post("/api/buy", json={"fid": "1001"})
        client.cookies.clear()

        response = await client.post("/api/input", json={"fid": "1001", "args": "0.05"})

        assert "I didn't understand that" in response.json()["response"]

    @pytest.mark.asyncio
    async def test_handler_crash_returns_500(self, client, chat, monkeypatch):
        async def crash(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(chat, "handle", crash)

        response = await client.post("/api/help", json={})

        assert response.status_code == 500
        assert response.json() == {"response": "Error processing command."}
