"""Shared fixtures."""

import socket
from urllib.parse import parse_qs, urlparse

import aiohttp
import pytest

from concept2_mcp import config
from concept2_mcp.config import Settings

NOW_MS = 1_700_000_000_000
TOKEN_URL = "https://log.concept2.com/oauth/access_token"


class FakeClock:
    """Settable millisecond clock."""

    def __init__(self, now: int = NOW_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the developer's environment and config file out of the tests."""
    for name in [
        "BASE_URL",
        "CLIENT_ID",
        "CLIENT_SECRET",
        "SCOPES",
        "REDIRECT_PORT",
        "TOKEN_FILE",
        "ACCESS_TOKEN",
        "AUTH_TIMEOUT_MS",
        "LOG_LEVEL",
    ]:
        monkeypatch.delenv(f"CONCEPT2_{name}", raising=False)
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "no-config.yaml")
    config.reset_settings()
    yield
    config.reset_settings()


@pytest.fixture
def free_port() -> int:
    """A loopback port that is currently unused."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings(tmp_path, free_port):
    """Build Settings for a test, with OAuth configured by default."""

    def _make(**overrides) -> Settings:
        values = {
            "client_id": "client-1234567890",
            "client_secret": "s3cret",
            "redirect_port": free_port,
            "callback_host": "127.0.0.1",
            "token_file": tmp_path / "tokens.json",
            "auth_timeout_ms": 2_000,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


def state_from_url(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


async def hit_callback(port: int, params: dict, path: str = "/callback") -> tuple[int, str]:
    """Send a browser-style redirect to the loopback listener."""
    async with aiohttp.ClientSession() as session:
        async with session.get(f"http://127.0.0.1:{port}{path}", params=params) as response:
            return response.status, await response.text()
