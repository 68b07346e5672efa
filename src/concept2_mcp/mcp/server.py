"""MCP server for the Concept2 Logbook.

Exposes the credential lifecycle (authorize, status, logout) and an
authenticated profile lookup as MCP tools.

Usage:
    # Run the server
    python -m concept2_mcp.mcp

    # Or via entry point
    concept2-mcp
"""

import logging
from functools import wraps
from typing import Callable, TypeVar

from mcp.server.fastmcp import FastMCP

from concept2_mcp.api import Concept2APIError, Concept2Client
from concept2_mcp.auth import (
    AuthError,
    AuthorizationTimeoutError,
    CallbackProtocolError,
    ConfigurationError,
    ListenerBusyError,
    RefreshFailedError,
    StateMismatchError,
    TokenLifecycleManager,
    UnauthenticatedError,
    create_token_manager,
)
from concept2_mcp.cli.formatters import format_status_markdown
from concept2_mcp.config import get_settings
from concept2_mcp.logging_config import configure_logging

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)

LOGIN_RESOLUTION = {
    "action": "login_required",
    "user_instruction": "Use the 'concept2_authorize' tool or run: concept2 login",
}

_token_manager: TokenLifecycleManager | None = None


def get_token_manager() -> TokenLifecycleManager:
    """Get the token manager owned by this server process."""
    global _token_manager
    if _token_manager is None:
        _token_manager = create_token_manager()
    return _token_manager


def set_token_manager(manager: TokenLifecycleManager | None) -> None:
    """Replace the server's token manager (useful for testing)."""
    global _token_manager
    _token_manager = manager


def _auth_error_response(e: AuthError) -> dict:
    """Map an authentication failure to a structured tool response."""
    if isinstance(e, ConfigurationError):
        settings = get_settings()
        return {
            "success": False,
            "error_type": "not_configured",
            "message": str(e),
            "resolution": {
                "action": "configure",
                "user_instruction": (
                    "Set CONCEPT2_CLIENT_ID and CONCEPT2_CLIENT_SECRET (or CONCEPT2_ACCESS_TOKEN "
                    f"for development). Get credentials at: {settings.developer_portal_url}"
                ),
            },
        }
    if isinstance(e, (UnauthenticatedError, RefreshFailedError)):
        return {
            "success": False,
            "error_type": "auth_error",
            "message": str(e),
            "resolution": LOGIN_RESOLUTION,
        }
    if isinstance(e, StateMismatchError):
        error_type = "state_mismatch"
    elif isinstance(e, CallbackProtocolError):
        error_type = "provider_error"
    elif isinstance(e, AuthorizationTimeoutError):
        error_type = "timeout"
    elif isinstance(e, ListenerBusyError):
        error_type = "listener_busy"
    else:
        error_type = "auth_error"
    return {"success": False, "error_type": error_type, "message": str(e)}


def mcp_error_handler(f: F) -> F:
    """Decorator to handle common errors in MCP tools.

    Authentication failures, API errors and unexpected exceptions are all
    returned as structured error responses.
    """

    @wraps(f)
    async def wrapper(*args, **kwargs):
        try:
            return await f(*args, **kwargs)
        except AuthError as e:
            return _auth_error_response(e)
        except Concept2APIError as e:
            return {
                "success": False,
                "error_type": "api_error",
                "status_code": e.status_code,
                "message": str(e),
            }
        except Exception:
            logger.exception(f"MCP tool error in {f.__name__}")
            return {
                "success": False,
                "error_type": "internal_error",
                "message": "An unexpected error occurred",
            }

    return wrapper  # type: ignore


# Initialize MCP server
mcp = FastMCP(
    name="concept2-logbook",
    instructions=(
        "Concept2 Logbook - connect a Concept2 account via OAuth2 and inspect the "
        "authenticated profile. Use concept2_auth_status before other tools."
    ),
)


@mcp.tool()
@mcp_error_handler
async def concept2_authorize(open_browser: bool = True) -> dict:
    """
    Connect a Concept2 Logbook account via the OAuth2 authorization-code flow.

    Starts a local callback listener, optionally opens the authorization URL in
    the default browser, and stores the issued tokens once the user approves.

    Args:
        open_browser: Automatically open the authorization URL in the default browser.
    """
    manager = get_token_manager()
    settings = manager.settings

    if manager.is_using_static_token():
        return {
            "success": True,
            "message": "Already authenticated using static access token (CONCEPT2_ACCESS_TOKEN).",
            "auth_method": "static",
        }

    token = await manager.run_authorization_flow(open_browser=open_browser)
    return {
        "success": True,
        "message": (
            "Authorization successful! Tokens have been stored and will be "
            "automatically refreshed when they expire."
        ),
        "server": settings.base_url,
        "token_storage": str(settings.token_file),
        "scope": token.scope,
    }


@mcp.tool()
async def concept2_auth_status() -> dict:
    """
    Check the current OAuth2 authorization status, token expiry, and configuration.

    Returns:
        Status with is_authenticated, auth_method, expiry and a markdown report.
    """
    manager = get_token_manager()
    status = manager.describe_status()
    return {
        "success": True,
        "is_authenticated": status.authenticated,
        "auth_method": status.mode.value,
        "oauth_configured": status.oauth_configured,
        "expired": status.expired,
        "seconds_remaining": status.seconds_remaining,
        "needs_authorization": manager.needs_authorization(),
        "report": format_status_markdown(status),
    }


@mcp.tool()
async def concept2_logout() -> dict:
    """Remove stored OAuth2 tokens and disconnect from the Concept2 Logbook."""
    get_token_manager().clear_tokens()
    return {
        "success": True,
        "message": (
            "Successfully logged out. Stored tokens have been removed. "
            "Use concept2_authorize to reconnect your Concept2 account."
        ),
    }


@mcp.tool()
@mcp_error_handler
async def concept2_get_user(user: str = "me") -> dict:
    """
    Get a Concept2 Logbook user profile.

    Args:
        user: User ID or 'me' for the authenticated user.
    """
    async with Concept2Client(get_token_manager()) as client:
        profile = await client.get_user(user)
    return {"success": True, "user": profile}


# -----------------------------------------------------------------------------
# Server Entry Point
# -----------------------------------------------------------------------------


def main():
    """Run the MCP server."""
    configure_logging(get_settings().log_level)
    logger.info(f"MCP server starting ({get_settings().base_url})")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
