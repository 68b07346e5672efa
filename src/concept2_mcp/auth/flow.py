"""OAuth2 authorization-code flow with a loopback redirect."""

import asyncio
import json
import logging
import secrets
from typing import Callable

from concept2_mcp.auth.callback_server import (
    CallbackListener,
    CodeReceived,
    ProviderError,
    TimedOut,
)
from concept2_mcp.auth.exceptions import (
    AuthorizationTimeoutError,
    CallbackProtocolError,
    ConfigurationError,
    ExchangeFailedError,
    ListenerBusyError,
    StateMismatchError,
)
from concept2_mcp.auth.oauth_client import OAuthClient
from concept2_mcp.auth.token_store import TokenRecord, TokenStore, now_ms
from concept2_mcp.config import Settings

logger = logging.getLogger(__name__)

STATE_BYTES = 32


def generate_state(random_bytes: Callable[[int], bytes] = secrets.token_bytes) -> str:
    """Generate a random hex state parameter for CSRF protection."""
    return random_bytes(STATE_BYTES).hex()


class AuthorizationFlowCoordinator:
    """Runs one authorization attempt at a time.

    Each attempt generates a fresh state nonce, serves the redirect on a
    loopback listener, verifies the returned state and exchanges the code
    for tokens. The nonce lives only for the duration of :meth:`run`.
    """

    def __init__(
        self,
        settings: Settings,
        oauth_client: OAuthClient,
        store: TokenStore,
        *,
        clock: Callable[[], int] = now_ms,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
        open_browser: Callable[[str], bool] | None = None,
    ):
        self.settings = settings
        self.oauth_client = oauth_client
        self.store = store
        self._clock = clock
        self._random_bytes = random_bytes
        self._open_browser = open_browser
        self._lock = asyncio.Lock()
        self._browser_tasks: set[asyncio.Task] = set()

    async def run(
        self,
        open_browser: bool = True,
        on_url: Callable[[str], None] | None = None,
    ) -> TokenRecord:
        """Run the flow and return the freshly issued, persisted token.

        Args:
            open_browser: Launch the default browser at the authorization URL
            on_url: Called with the authorization URL once the listener is up

        Raises:
            ConfigurationError: Client credentials are missing
            ListenerBusyError: A flow is already in progress or the port is taken
            CallbackProtocolError: The provider redirected with an error or no code
            AuthorizationTimeoutError: No redirect arrived in time
            StateMismatchError: The redirect's state does not match this attempt
            ExchangeFailedError: The token endpoint rejected the code
            NetworkError: The token endpoint could not be reached
        """
        if not self.settings.has_oauth_credentials:
            logger.error("OAuth2 credentials not configured")
            raise ConfigurationError()

        if self._lock.locked():
            raise ListenerBusyError(self.settings.redirect_port, "authorization already in progress")

        async with self._lock:
            code = await self._await_code(open_browser, on_url)
            logger.debug("Authorization code received, exchanging for tokens")
            return await self._exchange(code)

    async def _await_code(
        self, open_browser: bool, on_url: Callable[[str], None] | None
    ) -> str:
        state = generate_state(self._random_bytes)
        auth_url = self.oauth_client.authorization_url(state)
        logger.info(f"Starting OAuth2 authorization flow (redirect_uri={self.settings.redirect_uri})")

        listener = CallbackListener(
            self.settings.callback_host,
            self.settings.redirect_port,
            self.settings.callback_path,
            self.settings.auth_timeout_ms,
        )
        async with listener:
            if on_url is not None:
                on_url(auth_url)
            if open_browser:
                task = asyncio.create_task(self._launch_browser(auth_url))
                self._browser_tasks.add(task)
                task.add_done_callback(self._browser_tasks.discard)
            outcome = await listener.wait()

        match outcome:
            case CodeReceived(code=code, state=received_state):
                if not secrets.compare_digest(received_state.encode(), state.encode()):
                    logger.error("OAuth2 state mismatch")
                    raise StateMismatchError()
                return code
            case ProviderError(error=error, description=description):
                raise CallbackProtocolError(error, description)
            case TimedOut(timeout_ms=timeout_ms):
                raise AuthorizationTimeoutError(timeout_ms)
            case _:
                raise CallbackProtocolError("missing_code", "Missing authorization code")

    async def _launch_browser(self, url: str) -> None:
        """Open the URL without blocking the loop.

        Console browsers wait for the page they opened, which includes the
        redirect served by our own listener.
        """
        if self._open_browser is None:
            logger.info("No browser launcher configured; open the authorization URL manually")
            return
        logger.debug("Opening browser for authorization")
        try:
            opened = await asyncio.to_thread(self._open_browser, url)
        except Exception as e:
            logger.error(f"Failed to open browser: {e}")
            return
        if opened is False:
            logger.warning("Could not open a browser; open the authorization URL manually")

    async def _exchange(self, code: str) -> TokenRecord:
        logger.info("Exchanging authorization code for tokens")
        response = await self.oauth_client.exchange_code(code)

        if not response.is_success:
            logger.error(f"Token exchange failed with status {response.status_code}")
            raise ExchangeFailedError(response.status_code, response.text)

        try:
            record = TokenRecord.from_token_response(response.json(), self._clock())
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ExchangeFailedError(response.status_code, f"Invalid token response: {e}") from e

        self.store.save(record)
        logger.info(f"Successfully obtained OAuth2 tokens (scope={record.scope or 'n/a'})")
        return record
