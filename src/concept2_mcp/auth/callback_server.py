"""Single-use loopback listener for the OAuth2 redirect.

The listener serves one authorization attempt. It settles exactly once with
one of four outcomes (code received, provider error, malformed request or
timeout); anything arriving after that is answered but otherwise ignored.
"""

import asyncio
import enum
import html
import logging
from dataclasses import dataclass

from aiohttp import web

from concept2_mcp.auth.exceptions import ListenerBusyError

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{title}</title>
</head>
<body style="font-family: sans-serif; text-align: center; padding: 50px;">
  <h1>{title}</h1>
  {body}
</body>
</html>"""


def _page(title: str, body: str) -> str:
    return PAGE_TEMPLATE.format(title=title, body=body)


def _html_response(status: int, text: str) -> web.Response:
    return web.Response(
        status=status,
        text=text,
        content_type="text/html",
        headers={"X-Content-Type-Options": "nosniff", "X-Frame-Options": "DENY"},
    )


SUCCESS_HTML = _page(
    "Authorization Successful!",
    "<p>You can close this window and return to your application.</p>",
)
MISSING_CODE_HTML = _page("Invalid Request", "<p>Missing authorization code.</p>")
EXPIRED_HTML = _page(
    "Authorization Expired",
    "<p>This authorization attempt is no longer active. Please start again.</p>",
)


@dataclass(frozen=True)
class CodeReceived:
    code: str
    state: str


@dataclass(frozen=True)
class ProviderError:
    error: str
    description: str


@dataclass(frozen=True)
class MalformedRequest:
    reason: str


@dataclass(frozen=True)
class TimedOut:
    timeout_ms: int


CallbackOutcome = CodeReceived | ProviderError | MalformedRequest | TimedOut


class ListenerState(enum.Enum):
    IDLE = "idle"
    LISTENING = "listening"
    SETTLED = "settled"
    CLOSED = "closed"


class CallbackListener:
    """Local HTTP endpoint that waits for exactly one authorization redirect.

    Usage:
        async with CallbackListener("localhost", 49721, "/callback", 60_000) as listener:
            outcome = await listener.wait()
    """

    def __init__(
        self,
        host: str,
        port: int,
        path: str = "/callback",
        timeout_ms: int = 60_000,
    ):
        self.host = host
        self.port = port
        self.path = path
        self.timeout_ms = timeout_ms
        self.state = ListenerState.IDLE

        self._runner: web.AppRunner | None = None
        self._result: asyncio.Future[CallbackOutcome] | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def bound_port(self) -> int | None:
        """Port actually bound, once listening."""
        if self._runner is None or not self._runner.addresses:
            return None
        return self._runner.addresses[0][1]

    @property
    def outcome(self) -> CallbackOutcome | None:
        if self._result is None or not self._result.done():
            return None
        return self._result.result()

    async def start(self) -> None:
        """Bind the port and start the timeout clock.

        Raises:
            ListenerBusyError: If the port is already bound
        """
        if self.state is not ListenerState.IDLE:
            raise RuntimeError("CallbackListener is single-use")

        loop = asyncio.get_running_loop()
        self._result = loop.create_future()

        app = web.Application()
        app.router.add_get(self.path, self._handle_callback)

        runner = web.AppRunner(app, access_log=None, shutdown_timeout=5.0)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            self.state = ListenerState.CLOSED
            logger.error(f"Failed to start callback server on port {self.port}: {e}")
            raise ListenerBusyError(self.port, str(e)) from e

        self._runner = runner
        self.state = ListenerState.LISTENING
        self._timer = loop.call_later(self.timeout_ms / 1000, self._on_timeout)
        logger.info(f"OAuth2 callback server listening on {self.host}:{self.bound_port}{self.path}")

    async def wait(self) -> CallbackOutcome:
        """Wait for settlement, then shut the listener down."""
        if self._result is None:
            raise RuntimeError("CallbackListener not started")
        try:
            return await self._result
        finally:
            await self.close()

    async def close(self) -> None:
        """Release the socket. Safe to call more than once."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()
            logger.debug("OAuth2 callback server stopped")
        self.state = ListenerState.CLOSED

    async def __aenter__(self) -> "CallbackListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _settle(self, outcome: CallbackOutcome) -> bool:
        """Record the outcome unless one has already been recorded.

        Returns:
            True if this call settled the listener, False if it was ignored
        """
        if self._result is None or self._result.done():
            logger.debug(f"Ignoring {type(outcome).__name__}: listener already settled")
            return False
        self._result.set_result(outcome)
        self.state = ListenerState.SETTLED
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return True

    def _on_timeout(self) -> None:
        self._timer = None
        if self._settle(TimedOut(self.timeout_ms)):
            logger.error("OAuth2 authorization timed out")

    async def _handle_callback(self, request: web.Request) -> web.Response:
        query = request.query
        logger.debug(f"Callback server received request for {request.path}")

        if self._result is None or self._result.done():
            return _html_response(410, EXPIRED_HTML)

        error = query.get("error")
        if error:
            description = query.get("error_description") or "Unknown error"
            logger.error(f"OAuth2 callback received error: {error} ({description})")
            self._settle(ProviderError(error, description))
            body = (
                f'<p style="color: red;">{html.escape(description)}</p>'
                "<p>You can close this window.</p>"
            )
            return _html_response(200, _page("Authorization Failed", body))

        code = query.get("code")
        if not code:
            logger.error("OAuth2 callback missing authorization code")
            self._settle(MalformedRequest("Missing authorization code"))
            return _html_response(400, MISSING_CODE_HTML)

        logger.info("OAuth2 authorization code received")
        self._settle(CodeReceived(code, query.get("state", "")))
        return _html_response(200, SUCCESS_HTML)
