"""Tests for the MCP server tools."""

import asyncio

import httpx
import pytest
import respx

from concept2_mcp.auth import TokenLifecycleManager, TokenRecord, TokenStore
from concept2_mcp.mcp import server
from concept2_mcp.mcp.server import (
    concept2_auth_status,
    concept2_authorize,
    concept2_get_user,
    concept2_logout,
    set_token_manager,
)

from conftest import NOW_MS, TOKEN_URL, hit_callback, state_from_url

USER_URL = "https://log.concept2.com/api/users/me"


@pytest.fixture(autouse=True)
def reset_server_manager():
    set_token_manager(None)
    yield
    set_token_manager(None)


@pytest.fixture
def use_manager(clock):
    def _use(settings, **kwargs) -> TokenLifecycleManager:
        kwargs.setdefault("open_browser", None)
        manager = TokenLifecycleManager(settings, clock=clock, **kwargs)
        set_token_manager(manager)
        return manager

    return _use


def test_tools_registered():
    assert server.mcp.name == "concept2-logbook"


@pytest.mark.asyncio
class TestAuthTools:
    """Tests for concept2_authorize, concept2_auth_status and concept2_logout."""

    async def test_status_static(self, make_settings, use_manager):
        use_manager(make_settings(access_token="abc123"))

        result = await concept2_auth_status()

        assert result["success"] is True
        assert result["is_authenticated"] is True
        assert result["auth_method"] == "static"
        assert result["needs_authorization"] is False
        assert "Access Token" in result["report"]
        assert "OAuth credentials present but ignored" in result["report"]

    async def test_status_not_configured(self, make_settings, use_manager):
        use_manager(make_settings(client_id=None, client_secret=None))

        result = await concept2_auth_status()

        assert result["is_authenticated"] is False
        assert result["oauth_configured"] is False
        assert "Not configured" in result["report"]

    async def test_status_needs_authorization(self, make_settings, use_manager):
        use_manager(make_settings())

        result = await concept2_auth_status()

        assert result["needs_authorization"] is True
        assert "Not connected" in result["report"]

    async def test_status_connected(self, make_settings, use_manager):
        settings = make_settings()
        TokenStore(settings.token_file).save(
            TokenRecord("a", "r", NOW_MS + 7_200_000, scope="user:read")
        )
        use_manager(settings)

        result = await concept2_auth_status()

        assert result["is_authenticated"] is True
        assert result["seconds_remaining"] == 7200
        assert "Valid (expires in 2h 0m)" in result["report"]
        assert "user:read" in result["report"]

    async def test_authorize_static(self, make_settings, use_manager):
        use_manager(make_settings(access_token="abc123"))

        result = await concept2_authorize()

        assert result["success"] is True
        assert result["auth_method"] == "static"

    async def test_authorize_not_configured(self, make_settings, use_manager):
        use_manager(make_settings(client_id=None, client_secret=None))

        result = await concept2_authorize()

        assert result["success"] is False
        assert result["error_type"] == "not_configured"
        assert "developers/keys" in result["resolution"]["user_instruction"]

    async def test_authorize_success(self, make_settings, use_manager, free_port):
        loop = asyncio.get_running_loop()
        redirects = []

        def approve(url: str) -> bool:
            params = {"code": "auth-code", "state": state_from_url(url)}
            redirects.append(asyncio.run_coroutine_threadsafe(hit_callback(free_port, params), loop))
            return True

        settings = make_settings()
        manager = use_manager(settings, open_browser=approve)

        with respx.mock:
            respx.post(TOKEN_URL).mock(
                return_value=httpx.Response(
                    200,
                    json={
                        "access_token": "access-1",
                        "refresh_token": "refresh-1",
                        "expires_in": 604800,
                        "scope": "user:read,results:read",
                    },
                )
            )
            result = await concept2_authorize()

        await asyncio.gather(*(asyncio.wrap_future(f) for f in redirects))
        assert result["success"] is True
        assert result["scope"] == "user:read,results:read"
        assert result["token_storage"] == str(settings.token_file)
        assert manager.has_valid_token()

    async def test_authorize_timeout(self, make_settings, use_manager):
        use_manager(make_settings(auth_timeout_ms=100), open_browser=lambda url: True)

        result = await concept2_authorize()

        assert result["success"] is False
        assert result["error_type"] == "timeout"

    async def test_logout(self, make_settings, use_manager):
        settings = make_settings()
        TokenStore(settings.token_file).save(TokenRecord("a", "r", NOW_MS + 3_600_000))
        manager = use_manager(settings)

        result = await concept2_logout()

        assert result["success"] is True
        assert not manager.has_valid_token()
        assert not settings.token_file.exists()


@pytest.mark.asyncio
class TestGetUser:
    """Tests for concept2_get_user."""

    @respx.mock
    async def test_get_user(self, make_settings, use_manager):
        use_manager(make_settings(access_token="abc123"))
        respx.get(USER_URL).mock(
            return_value=httpx.Response(200, json={"data": {"id": 1, "username": "rower42"}})
        )

        result = await concept2_get_user()

        assert result == {"success": True, "user": {"id": 1, "username": "rower42"}}

    async def test_get_user_unauthenticated(self, make_settings, use_manager):
        use_manager(make_settings())

        result = await concept2_get_user()

        assert result["success"] is False
        assert result["error_type"] == "auth_error"
        assert result["resolution"]["action"] == "login_required"

    @respx.mock
    async def test_get_user_api_error(self, make_settings, use_manager):
        use_manager(make_settings(access_token="abc123"))
        respx.get(USER_URL).mock(return_value=httpx.Response(500, text="boom"))

        result = await concept2_get_user()

        assert result["success"] is False
        assert result["error_type"] == "api_error"
        assert result["status_code"] == 500
