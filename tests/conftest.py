"""
Pytest configuration. Settings are built from an empty working directory so a
local .env file is never picked up.
"""
import pytest

from token_relay.config import Settings
from token_relay.http_client.provider_client import AccessToken

TOKEN_RESPONSE = {
    "access_token": "t",
    "refresh_token": "r",
    "expires_in": 3600,
    "token_type": "bearer",
}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def access_token():
    return AccessToken(**TOKEN_RESPONSE)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return Settings(
        port=8000,
        client_id="test-client",
        client_secret="test-secret",
        redirect_uri="http://127.0.0.1:8000/login",
        token_url="https://provider.example/oauth/token",
    )
