"""
Pytest fixtures for backend tests.
"""

import os
import tempfile
from pathlib import Path
from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi.testclient import TestClient

from mailboard.config import config, state
from mailboard.database import Database
from mailboard.google import GoogleOAuthManager, OAuthSettings
from mailboard.rate_limit import limiter
from mailboard.server import app


TEST_CLIENT_ID = "test-client-id.apps.googleusercontent.com"
TEST_CLIENT_SECRET = "test-client-secret-do-not-leak"
TEST_REDIRECT_URI = "http://localhost:3000/auth/google/callback"


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeGoogle:
    """Stands in for Google's token and tokeninfo endpoints."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_body: dict = {
            "access_token": "ya29.test-access-token",
            "refresh_token": "1//test-refresh-token",
            "expires_in": 3599,
            "token_type": "Bearer",
            "scope": "https://www.googleapis.com/auth/spreadsheets.readonly",
        }
        self.tokeninfo_status = 200
        self.raise_error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        if request.url.path == "/token":
            return httpx.Response(self.token_status, json=self.token_body)
        if request.url.path == "/oauth2/v1/tokeninfo":
            return httpx.Response(self.tokeninfo_status, json={"expires_in": 100})
        return httpx.Response(404)

    def reject(self, status: int = 400, error: str = "invalid_grant"):
        self.token_status = status
        self.token_body = {"error": error, "error_description": "Bad Request"}

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/token"]

    def last_form(self) -> dict:
        return dict(parse_qsl(self.token_requests[-1].content.decode()))


@pytest.fixture(autouse=True)
def isolated_config():
    """Run every test with auth and cookie binding off unless it opts in."""
    original = {
        "AUTH_API_KEY": config.AUTH_API_KEY,
        "SESSION_SECRET": config.SESSION_SECRET,
        "APP_URL": config.APP_URL,
    }
    config.AUTH_API_KEY = ""
    config.SESSION_SECRET = ""
    config.APP_URL = "http://localhost:3000"
    limiter.reset()

    yield

    for key, value in original.items():
        setattr(config, key, value)


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    # Cleanup
    if os.path.exists(f.name):
        os.unlink(f.name)


@pytest.fixture
def test_db(temp_db_path):
    """Create a test database instance."""
    return Database(temp_db_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_google():
    return FakeGoogle()


@pytest.fixture
def oauth_settings():
    return OAuthSettings(
        client_id=TEST_CLIENT_ID,
        client_secret=TEST_CLIENT_SECRET,
        redirect_uri=TEST_REDIRECT_URI,
    )


@pytest.fixture
def oauth_manager(test_db, oauth_settings, fake_google, clock):
    """OAuth manager talking to FakeGoogle, on a controllable clock."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_google.handler))
    return GoogleOAuthManager(
        oauth_settings,
        test_db.oauth_states,
        http_client=http_client,
        clock=clock,
    )


@pytest.fixture
def client(test_db):
    """Test client with an isolated database and Google OAuth disabled."""
    original_db = state.db
    original_manager = state.oauth_manager

    state.db = test_db
    state.oauth_manager = None

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    state.db = original_db
    state.oauth_manager = original_manager


@pytest.fixture
def client_with_oauth(test_db, oauth_manager):
    """Test client with Google OAuth configured against FakeGoogle."""
    original_db = state.db
    original_manager = state.oauth_manager

    state.db = test_db
    state.oauth_manager = oauth_manager

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    state.db = original_db
    state.oauth_manager = original_manager


@pytest.fixture
def campaign_id(test_db):
    """A draft campaign with no queue yet."""
    return test_db.add_campaign(
        user_id="user_123",
        name="Spring Newsletter",
        settings={
            "subject": "Spring is here",
            "target_tags": ["newsletter"],
            "track_opens": True,
            "track_clicks": True,
        },
    )
