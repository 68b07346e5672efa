"""Client for the provider's OAuth2 endpoints.

Builds the authorization URL and talks to the token endpoint for both the
``authorization_code`` and ``refresh_token`` grants.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator
from urllib.parse import urlencode

import httpx

from concept2_mcp.auth.exceptions import NetworkError
from concept2_mcp.config import Settings

logger = logging.getLogger(__name__)


class OAuthClient:
    """Talks to ``/oauth/authorize`` and ``/oauth/access_token``."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._http_client = http_client

    def authorization_url(self, state: str) -> str:
        """Get the provider URL the user must visit to grant access."""
        params = {
            "client_id": self.settings.client_id or "",
            "scope": self.settings.scopes,
            "response_type": "code",
            "redirect_uri": self.settings.redirect_uri,
            "state": state,
        }
        return f"{self.settings.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> httpx.Response:
        """POST the authorization code grant."""
        return await self._post_token(
            {
                "client_id": self.settings.client_id or "",
                "client_secret": self.settings.client_secret or "",
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.settings.redirect_uri,
                "scope": self.settings.scopes,
            }
        )

    async def refresh(self, refresh_token: str) -> httpx.Response:
        """POST the refresh token grant."""
        return await self._post_token(
            {
                "client_id": self.settings.client_id or "",
                "client_secret": self.settings.client_secret or "",
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            }
        )

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.settings.http_timeout) as client:
            yield client

    async def _post_token(self, data: dict[str, str]) -> httpx.Response:
        grant = data["grant_type"]
        start = time.monotonic()
        try:
            async with self._client() as client:
                response = await client.post(
                    self.settings.token_endpoint,
                    data=data,
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Accept": "application/json",
                    },
                )
        except httpx.RequestError as e:
            logger.error(f"Network error during {grant} grant: {e}")
            raise NetworkError(f"Network error talking to the token endpoint: {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug(f"Token endpoint answered {response.status_code} for {grant} in {elapsed_ms}ms")
        return response
