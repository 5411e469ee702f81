"""Summary: API integration tests.

Importance: Validates FastAPI endpoints against the login and auth bridge workflows.
Alternatives: Use manual curl testing only.
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from financeai.api import AUTH_FAILURE, create_app
from financeai.config import AppConfig
from financeai.oauth import AuthResponse, DiscordProfile, OAuthTokenResult


@pytest.fixture
def client(config: AppConfig) -> TestClient:
    return TestClient(create_app(config))


def test_index_and_health(client: TestClient) -> None:
    assert client.get("/").json() == {
        "message": "Finance AI Web Server",
        "status": "ok",
        "auth": "discord oauth enabled",
    }
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["uptime"] >= 0
    assert "timestamp" in health


def test_login_redirects_to_discord(client: TestClient) -> None:
    response = client.get("/login/discord", follow_redirects=False)
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("https://discord.com/oauth2/authorize?")
    assert "client_id=123456789" in location


def test_login_reports_handler_failures(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    handler = client.app.state.context.auth_handler

    def broken(provider, callback_url=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(handler, "sign_in_social", broken)
    response = client.get("/login/discord", follow_redirects=False)
    assert response.status_code == 500
    assert response.json() == {"error": "Internal login error"}

    monkeypatch.setattr(handler, "sign_in_social", lambda provider, callback_url=None: AuthResponse.json(200, {}))
    assert client.get("/login/discord", follow_redirects=False).status_code == 400


def test_static_pages(client: TestClient) -> None:
    success = client.get("/login-success")
    assert success.status_code == 200
    assert "Login realizado com sucesso" in success.text
    assert "Logout" in client.get("/logout/discord").text


def test_auth_bridge_completes_discord_login(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Summary: Verify sign-in and callback round trip through the HTTP bridge.

    Importance: Confirms request and response translation keeps status and headers.
    Alternatives: Test the handler without HTTP.
    """

    context = client.app.state.context
    handler = context.auth_handler
    monkeypatch.setattr(
        handler, "exchange_code", lambda code: OAuthTokenResult.from_response({"access_token": "t"})
    )
    monkeypatch.setattr(
        handler,
        "fetch_profile",
        lambda token: DiscordProfile.from_response({"id": "42", "username": "ana", "email": "a@x.io"}),
    )

    started = client.post(
        "/api/auth/sign-in/social",
        json={"provider": "discord", "callbackURL": "http://localhost:3333/login-success"},
    )
    assert started.status_code == 200
    assert started.headers["content-type"].startswith("application/json")
    state = started.json()["url"].split("state=")[1].split("&")[0]

    callback = client.get(
        "/api/auth/callback/discord",
        params={"code": "abc", "state": state},
        follow_redirects=False,
    )
    assert callback.status_code == 302
    assert callback.headers["location"] == "http://localhost:3333/login-success"
    assert context.users.find_user_by_discord_id("42").email == "a@x.io"


def test_auth_bridge_passes_handler_errors(client: TestClient) -> None:
    response = client.post("/api/auth/sign-in/social", json={"provider": "github"})
    assert response.status_code == 400
    assert client.get("/api/auth/unknown").status_code == 404


def test_auth_bridge_hides_exceptions(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def broken(request):
        raise RuntimeError("secret detail")

    monkeypatch.setattr(client.app.state.context.auth_handler, "handle", broken)
    response = client.get("/api/auth/ok")
    assert response.status_code == 500
    assert response.json() == AUTH_FAILURE
    assert "secret" not in json.dumps(response.json())


def test_auth_bridge_rejects_untrusted_callback(client: TestClient) -> None:
    response = client.post(
        "/api/auth/sign-in/social",
        json={"provider": "discord", "callbackURL": "https://evil.example/phish"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid callbackURL"}
