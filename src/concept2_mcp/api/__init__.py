"""Concept2 Logbook API client."""

from concept2_mcp.api.client import Concept2Client
from concept2_mcp.api.exceptions import (
    Concept2APIError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TokenExpiredError,
)

__all__ = [
    "Concept2Client",
    "Concept2APIError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "TokenExpiredError",
]
