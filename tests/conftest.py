import pytest
from fastapi.responses import RedirectResponse
from fastapi.testclient import TestClient

from profile_gate.auth.provider import LoginResult
from profile_gate.auth.utils import decode_token
from profile_gate.config import Settings
from profile_gate.main import create_app
from profile_gate.session import SESSION_COOKIE_NAME

PROVIDER_LOGIN_URL = "https://tenant.example.auth0.com/authorize?client_id=test-client-id"

ALICE = {
    "id": "auth0|123",
    "user_id": "auth0|123",
    "provider": "auth0",
    "name": "Alice",
    "nickname": "alice",
    "picture": "https://example.com/alice.png",
    "_raw": '{"sub": "auth0|123", "raw_marker": "raw-payload-only"}',
    "_json": {"sub": "auth0|123", "json_marker": "json-payload-only"},
}


class FakeProvider:
    """Stands in for Auth0: no network, configurable callback outcome."""

    def __init__(self):
        self.result = LoginResult(profile=dict(ALICE))
        self.login_calls = 0

    async def begin_login(self, request):
        self.login_calls += 1
        return RedirectResponse(PROVIDER_LOGIN_URL, status_code=302)

    async def complete_login(self, request):
        return self.result

    def logout_url(self, return_to):
        return f"https://tenant.example.auth0.com/v2/logout?returnTo={return_to}"


def make_settings(**overrides) -> Settings:
    values = {
        "auth0_domain": "tenant.example.auth0.com",
        "auth0_client_id": "test-client-id",
        "auth0_client_secret": "test-client-secret",
        "session_secret": "test-secret-key-for-testing-purposes-only",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def session_data(client: TestClient) -> dict | None:
    """Server-side session record behind the client's cookie."""
    app = client.app
    token = client.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    session_id = decode_token(app.state.settings, token)
    if not session_id:
        return None
    return app.state.session_store.get(session_id)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def app(settings, provider):
    return create_app(settings, identity_provider=provider)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def logged_in_client(client):
    resp = client.get("/callback", follow_redirects=False)
    assert resp.status_code == 302
    return client
