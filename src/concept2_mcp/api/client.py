"""Async HTTP client for the Concept2 Logbook API with retry logic."""

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from concept2_mcp import __version__
from concept2_mcp.api.exceptions import (
    Concept2APIError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TokenExpiredError,
)
from concept2_mcp.auth.token_manager import TokenLifecycleManager

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/vnd.c2logbook.v1+json"

STATUS_MESSAGES = {
    401: "Authentication failed. Token may be expired. Use concept2_authorize to re-authenticate.",
    403: "Permission denied. Your token may lack the required scope.",
    404: "Resource not found. Double-check the ID or endpoint.",
    409: "Duplicate result. A workout with the same date, time, and distance already exists.",
    429: "Rate limited. Wait a moment before retrying.",
}


class Concept2Client:
    """Bearer-authenticated client for ``{base_url}/api``.

    The access token is fetched from the token manager for every request, so
    an expiring token is refreshed transparently.
    """

    def __init__(
        self,
        token_manager: TokenLifecycleManager,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_manager = token_manager
        self._timeout = timeout or token_manager.settings.http_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self.token_manager.settings.api_base

    async def __aenter__(self) -> "Concept2Client":
        """Enter context manager, creating HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Accept": ACCEPT_HEADER,
                "Content-Type": "application/json",
                "User-Agent": f"concept2-mcp/{__version__}",
            },
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args) -> None:
        """Exit context manager, closing HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _check_client(self) -> httpx.AsyncClient:
        """Ensure client is initialized."""
        if self._client is None:
            raise RuntimeError("Client not initialized - use 'async with' context manager")
        return self._client

    def _handle_response(self, response: httpx.Response) -> Any:
        """Handle API response, raising appropriate errors."""
        if response.is_success:
            if not response.content:
                return {}
            return response.json()

        status = response.status_code
        try:
            detail = response.json()
            detail_text = str(detail)
        except ValueError:
            detail_text = response.text

        if status == 401:
            raise TokenExpiredError(STATUS_MESSAGES[401], 401, detail_text)
        if status == 403:
            raise PermissionDeniedError(STATUS_MESSAGES[403], 403, detail_text)
        if status == 404:
            raise NotFoundError(STATUS_MESSAGES[404], 404, detail_text)
        if status == 429:
            retry_after = int(response.headers.get("Retry-After", "60"))
            raise RateLimitError(STATUS_MESSAGES[429], retry_after)
        if status == 422:
            raise Concept2APIError(f"Validation error: {detail_text}", 422, detail_text)
        message = STATUS_MESSAGES.get(status, f"API error {status}: {detail_text}")
        raise Concept2APIError(message, status, detail_text)

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        path: str,
        *,
        public: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Make an API request with retry logic."""
        client = self._check_client()
        headers = {}
        if not public:
            access_token = await self.token_manager.get_access_token()
            headers["Authorization"] = f"Bearer {access_token}"

        logger.debug(f"{method} {path}")
        response = await client.request(method, path, headers=headers, **kwargs)
        logger.debug(f"{method} {path} completed with {response.status_code}")
        return self._handle_response(response)

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        public: bool = False,
    ) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        return await self._request("GET", path, params=params, public=public)

    async def post(self, path: str, body: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", path, json=body)

    async def patch(self, path: str, body: dict[str, Any]) -> Any:
        return await self._request("PATCH", path, json=body)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    async def get_user(self, user: str | int = "me") -> dict[str, Any]:
        """Get a logbook user profile ('me' for the authenticated user)."""
        data = await self.get(f"/users/{user}")
        return data.get("data", data) if isinstance(data, dict) else data
