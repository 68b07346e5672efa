"""Exceptions for the Concept2 Logbook API."""


class Concept2APIError(Exception):
    """Base exception for Logbook API errors."""

    def __init__(self, message: str, status_code: int | None = None, detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class TokenExpiredError(Concept2APIError):
    """The API rejected the bearer token."""


class PermissionDeniedError(Concept2APIError):
    """The token lacks the required scope."""


class NotFoundError(Concept2APIError):
    """Resource does not exist."""


class RateLimitError(Concept2APIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message, 429)
        self.retry_after = retry_after
