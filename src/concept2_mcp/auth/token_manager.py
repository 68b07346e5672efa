"""Token lifecycle: static vs OAuth mode, expiry and refresh."""

import asyncio
import enum
import json
import logging
import secrets
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import httpx

from concept2_mcp.auth.exceptions import RefreshFailedError, UnauthenticatedError
from concept2_mcp.auth.flow import AuthorizationFlowCoordinator
from concept2_mcp.auth.oauth_client import OAuthClient
from concept2_mcp.auth.token_store import TokenRecord, TokenStore, now_ms
from concept2_mcp.config import Settings, get_settings

logger = logging.getLogger(__name__)


class AuthMode(enum.Enum):
    STATIC = "static"
    OAUTH = "oauth"


@dataclass(frozen=True)
class AuthStatus:
    """Snapshot of the authentication state for display."""

    server: str
    is_dev_server: bool
    mode: AuthMode
    oauth_configured: bool
    client_id_hint: str | None
    authenticated: bool
    expired: bool
    seconds_remaining: int | None
    scope: str | None
    token_file: Path

    @property
    def oauth_credentials_ignored(self) -> bool:
        return self.mode is AuthMode.STATIC and self.client_id_hint is not None


def mask_client_id(client_id: str | None) -> str | None:
    if not client_id:
        return None
    return client_id[:8] + "..." if len(client_id) > 8 else client_id


class TokenLifecycleManager:
    """Hands out valid bearer tokens.

    The mode is fixed at construction: a configured static token always wins
    over OAuth credentials. In OAuth mode the held record is refreshed when it
    gets within ``settings.expiry_buffer_ms`` of expiring; concurrent callers
    share a single in-flight refresh.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: TokenStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], int] = now_ms,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
        open_browser: Callable[[str], bool] | None = webbrowser.open,
    ):
        self.settings = settings
        self.store = store or TokenStore(settings.token_file)
        self.oauth_client = OAuthClient(settings, http_client)
        self.flow = AuthorizationFlowCoordinator(
            settings,
            self.oauth_client,
            self.store,
            clock=clock,
            random_bytes=random_bytes,
            open_browser=open_browser,
        )
        self._clock = clock
        self._refresh_task: asyncio.Future[TokenRecord] | None = None

        if settings.access_token:
            self._mode = AuthMode.STATIC
            self._token: TokenRecord | None = TokenRecord.static(
                settings.access_token, settings.scopes, clock()
            )
            logger.info(f"Using static access token from CONCEPT2_ACCESS_TOKEN ({settings.base_url})")
            if settings.client_id or settings.client_secret:
                logger.warning("OAuth credentials ignored when CONCEPT2_ACCESS_TOKEN is set")
        else:
            self._mode = AuthMode.OAUTH
            logger.debug(f"Checking for existing tokens in {self.store.path}")
            self._token = self.store.load()
            if self._token is not None:
                logger.info(
                    f"Loaded existing OAuth2 tokens (expires in "
                    f"{self._token.seconds_remaining(clock())}s, scope={self._token.scope})"
                )

    @property
    def mode(self) -> AuthMode:
        return self._mode

    def is_using_static_token(self) -> bool:
        return self._mode is AuthMode.STATIC

    def needs_authorization(self) -> bool:
        """True when OAuth is configured but no token is held."""
        if self.is_using_static_token() or not self.settings.has_oauth_credentials:
            return False
        return self._token is None

    def has_valid_token(self) -> bool:
        return self._token is not None

    def is_expired(self, buffer_ms: int | None = None) -> bool:
        """Check if the held token expires within ``buffer_ms`` (default from settings)."""
        token = self._token
        if token is None:
            return True
        if self.is_using_static_token():
            return False
        if buffer_ms is None:
            buffer_ms = self.settings.expiry_buffer_ms
        return token.is_expired(self._clock(), buffer_ms)

    def get_token_info(self) -> TokenRecord | None:
        return self._token

    async def get_access_token(self) -> str:
        """Return a usable access token, refreshing it first if needed.

        Raises:
            UnauthenticatedError: No token is held
            RefreshFailedError: The provider rejected the refresh token
            NetworkError: The token endpoint could not be reached
        """
        token = self._token
        if token is None:
            logger.error("No token available")
            raise UnauthenticatedError()

        if self.is_using_static_token():
            return token.access_token

        if token.is_expired(self._clock(), self.settings.expiry_buffer_ms):
            logger.info("Token expired, refreshing")
            token = await self._refresh_once()
        return token.access_token

    async def run_authorization_flow(
        self,
        open_browser: bool = True,
        on_url: Callable[[str], None] | None = None,
    ) -> TokenRecord:
        """Establish OAuth credentials interactively.

        A no-op in static mode. See :meth:`AuthorizationFlowCoordinator.run`
        for the failure modes.
        """
        token = self._token
        if self.is_using_static_token() and token is not None:
            logger.debug("Already using static token, skipping OAuth flow")
            return token

        record = await self.flow.run(open_browser=open_browser, on_url=on_url)
        self._token = record
        return record

    def clear_tokens(self) -> None:
        """Forget the OAuth token and delete the token file.

        A static token is configuration, not state, and stays in effect.
        """
        logger.info("Clearing stored tokens")
        if not self.is_using_static_token():
            self._token = None
        self.store.delete()

    def describe_status(self) -> AuthStatus:
        token = self._token
        authenticated = token is not None
        seconds_remaining = None
        if token is not None and not self.is_using_static_token():
            seconds_remaining = token.seconds_remaining(self._clock())
        return AuthStatus(
            server=self.settings.base_url,
            is_dev_server=self.settings.is_dev_server,
            mode=self._mode,
            oauth_configured=self.settings.has_oauth_credentials,
            client_id_hint=mask_client_id(self.settings.client_id),
            authenticated=authenticated,
            expired=authenticated and self.is_expired(),
            seconds_remaining=seconds_remaining,
            scope=token.scope if token else None,
            token_file=self.store.path,
        )

    async def _refresh_once(self) -> TokenRecord:
        """Join the in-flight refresh, or start one."""
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._refresh())
            self._refresh_task = task
            task.add_done_callback(self._refresh_finished)
        return await asyncio.shield(task)

    def _refresh_finished(self, task: "asyncio.Future[TokenRecord]") -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter was cancelled
            task.exception()

    async def _refresh(self) -> TokenRecord:
        current = self._token
        if current is None:
            raise UnauthenticatedError()
        if not current.has_refresh_token():
            logger.error("Token expired and no refresh token is available")
            self.clear_tokens()
            raise UnauthenticatedError()

        logger.info("Refreshing OAuth2 access token")
        response = await self.oauth_client.refresh(current.refresh_token)

        if self._token is not current:
            # A login or logout replaced the record while the request was in flight
            logger.info("Token changed during refresh; discarding refresh result")
            if self._token is None:
                raise UnauthenticatedError()
            return self._token

        if not response.is_success:
            logger.error(f"Token refresh failed with status {response.status_code}")
            self.clear_tokens()
            raise RefreshFailedError(response.status_code, response.text)

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("Token response is not a JSON object")
            if not data.get("refresh_token"):
                # Providers that do not rotate refresh tokens omit it
                data = {**data, "refresh_token": current.refresh_token}
            record = TokenRecord.from_token_response(data, self._clock())
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Token refresh returned an unusable response: {e}")
            self.clear_tokens()
            raise RefreshFailedError(response.status_code, f"Invalid token response: {e}") from e

        self._token = record
        self.store.save(record)
        logger.info(f"Successfully refreshed OAuth2 token (expires in {record.seconds_remaining(self._clock())}s)")
        return record


def create_token_manager(settings: Settings | None = None) -> TokenLifecycleManager:
    """Build a token manager from the process settings."""
    return TokenLifecycleManager(settings or get_settings())
